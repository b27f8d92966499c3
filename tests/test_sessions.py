from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from conftest import session_row
from studio_analytics.features.sessions import (
    DIMENSIONS,
    filter_sessions,
    format_comparison,
    format_efficiency,
    payment_breakdown,
    session_overview,
    sessions_month_on_month,
    summarize_by,
    time_slot_efficiency,
)
from studio_analytics.models.schema import SessionFilterOptions


class TestSummarizeBy:
    def test_format_buckets(self, sessions):
        table = summarize_by(sessions, "format").set_index("format")
        cycle = table.loc["Studio PowerCycle"]
        barre = table.loc["Studio Barre 57"]
        assert cycle["totalCapacity"] == 20
        assert cycle["totalCheckedIn"] == 12
        assert cycle["fillRate"] == pytest.approx(60.0)
        assert barre["totalCapacity"] == 20
        assert barre["totalCheckedIn"] == 0
        assert barre["fillRate"] == 0
        assert barre["emptySessions"] == 1

    @pytest.mark.parametrize("dimension", list(DIMENSIONS))
    def test_every_session_lands_in_one_bucket(self, sessions, dimension):
        table = summarize_by(sessions, dimension)
        assert table["totalSessions"].sum() == len(sessions)

    def test_zero_denominators(self, sessions):
        barre = summarize_by(sessions, "format").set_index("format").loc["Studio Barre 57"]
        assert barre["showUpRate"] == 0
        assert barre["lateCancelRate"] == 0
        assert barre["revenuePerAttendee"] == 0
        ratios = summarize_by(sessions, "format").select_dtypes("number")
        assert np.isfinite(ratios.to_numpy(dtype=float)).all()

    def test_missing_format_becomes_unknown(self):
        df = pd.DataFrame([session_row(cleanedClass="", classType="")])
        assert summarize_by(df, "format")["format"].tolist() == ["Unknown"]

    def test_same_result_twice(self, sessions):
        pd.testing.assert_frame_equal(summarize_by(sessions), summarize_by(sessions.copy()))

    def test_unknown_dimension(self, sessions):
        with pytest.raises(ValueError):
            summarize_by(sessions, "instructor_mood")

    def test_empty_input(self):
        assert summarize_by(pd.DataFrame(), "trainer").empty


class TestEfficiency:
    def test_score_and_category(self, sessions):
        table = format_efficiency(sessions)
        assert table["format"].tolist() == ["Studio PowerCycle", "Studio Barre 57"]
        cycle, barre = table.iloc[0], table.iloc[1]
        # one optimized (80%) and one underutilized (40%) class
        assert cycle["optimizedSessions"] == 1
        assert cycle["underutilizedSessions"] == 1
        assert cycle["efficiencyScore"] == pytest.approx(70.0)
        assert cycle["category"] == "Good"
        assert barre["efficiencyScore"] == 0
        assert barre["category"] == "Needs Improvement"
        assert "Review scheduling" in barre["recommendations"]

    def test_time_slot_score_and_order(self, sessions):
        table = time_slot_efficiency(sessions)
        assert table["timeSlot"].tolist() == ["07:00", "18:00"]
        assert table.loc[0, "efficiencyScore"] == pytest.approx(0.6 * 1000)
        assert table.loc[1, "efficiencyScore"] == 0

    def test_payment_breakdown(self, sessions):
        table = payment_breakdown(sessions).set_index("format")
        cycle = table.loc["Studio PowerCycle"]
        assert cycle["membership"] == 8
        assert cycle["paidAttendees"] == 10
        assert cycle["freeAttendees"] == 2
        assert cycle["monetizationRate"] == pytest.approx(50.0)
        assert table.loc["Studio Barre 57", "paidAttendeeRate"] == 0


class TestMonthOnMonth:
    def test_newest_first_with_changes(self, sessions):
        table = sessions_month_on_month(sessions)
        assert table["month"].tolist() == ["Feb 2024", "Jan 2024"]
        feb, jan = table.iloc[0], table.iloc[1]
        assert feb["totalCheckedInChange"] == -12
        assert feb["totalCheckedInChangePct"] == pytest.approx(-100.0)
        assert feb["totalCheckedInTrend"] == "down"
        assert jan["totalCheckedInChangePct"] == 0
        assert jan["totalCheckedInTrend"] == "flat"

    def test_zero_previous_month(self):
        df = pd.DataFrame(
            [
                session_row(date="10/01/2024", checkedInCount=0),
                session_row(date="10/02/2024", checkedInCount=50, capacity=60),
            ]
        )
        feb = sessions_month_on_month(df).iloc[0]
        assert feb["totalCheckedInChange"] == 50
        assert feb["totalCheckedInChangePct"] == 0

    def test_unparseable_dates_skipped(self):
        df = pd.DataFrame([session_row(date="someday"), session_row(date="10/01/2024")])
        assert sessions_month_on_month(df)["totalSessions"].sum() == 1


def test_format_comparison_winners(sessions):
    table = format_comparison(sessions).set_index("metric")
    assert table.loc["avgFillRate", "Cycle"] == pytest.approx(60.0)
    assert table.loc["avgFillRate", "Barre"] == 0
    assert table.loc["avgFillRate", "winner"] == "Cycle"
    assert table.loc["emptySessions", "Barre"] == 1
    assert table.loc["emptySessions", "winner"] == "Cycle"


class TestFilterSessions:
    def test_empty_lists_are_no_ops(self, sessions):
        assert len(filter_sessions(sessions, SessionFilterOptions())) == len(sessions)

    def test_trainer_membership(self, sessions):
        filtered = filter_sessions(sessions, SessionFilterOptions(trainer=["Mrigakshi Jaiswal"]))
        assert filtered["sessionId"].tolist() == ["S3"]

    def test_date_and_format(self, sessions):
        filtered = filter_sessions(
            sessions,
            SessionFilterOptions(date_start="2024-01-01", date_end="2024-01-31", class_format=["Studio PowerCycle"]),
        )
        assert filtered["sessionId"].tolist() == ["S1", "S2"]


def test_session_overview(sessions):
    cards = session_overview(sessions).set_index("metric")["value"]
    assert cards["totalSessions"] == 3
    assert cards["fillRate"] == pytest.approx(30.0)
    assert cards["emptySessions"] == 1
    assert cards["utilizationRate"] == pytest.approx(200 / 3)
