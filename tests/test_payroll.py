from __future__ import annotations

import logging

import pandas as pd
import pytest

from conftest import payroll_row
from studio_analytics.features.payroll import (
    filter_payroll,
    payroll_format_comparison,
    process_trainer_data,
    trainer_month_on_month,
    trainer_rankings,
    trainer_summary,
    trainer_year_on_year,
)
from studio_analytics.models.schema import SessionFilterOptions


@pytest.fixture
def processed(payroll) -> pd.DataFrame:
    return process_trainer_data(payroll)


class TestProcessTrainerData:
    def test_derived_metrics(self, processed):
        row = processed.iloc[0]
        assert row["trainerName"] == "Anisha Shah"
        assert row["monthKey"] == "2024-01"
        assert row["year"] == 2024
        assert row["conversionRate"] == 40.0
        assert row["retentionRate"] == 60.0
        assert row["classAverageInclEmpty"] == pytest.approx(6.0)
        assert row["classAverageExclEmpty"] == pytest.approx(60 / 9)
        assert row["utilizationRate"] == pytest.approx(90.0)
        assert row["revenuePerSession"] == pytest.approx(4000.0)
        assert row["estimatedFillRate"] == pytest.approx(30.0)
        assert row["consistencyScore"] == pytest.approx(90.0)
        assert row["topFormat"] == "Cycle"
        assert row["cycleShare"] == pytest.approx(60.0)

    def test_zero_session_month(self):
        df = process_trainer_data(
            pd.DataFrame(
                [
                    payroll_row(
                        totalSessions=0,
                        totalNonEmptySessions=0,
                        totalEmptySessions=0,
                        totalCustomers=0,
                        cycleSessions=0,
                        barreSessions=0,
                    )
                ]
            )
        )
        row = df.iloc[0]
        assert row["classAverageInclEmpty"] == 0
        assert row["revenuePerSession"] == 0
        assert row["consistencyScore"] == 0
        assert row["topFormat"] == "Unknown"

    def test_unreadable_month_is_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            df = process_trainer_data(pd.DataFrame([payroll_row(monthYear="sometime")]))
        assert df.loc[0, "monthKey"] is None
        assert "unreadable monthYear" in caplog.text


class TestRankings:
    def test_summary_per_trainer(self, processed):
        summary = trainer_summary(processed).set_index("trainerName")
        anisha = summary.loc["Anisha Shah"]
        assert anisha["totalRevenue"] == 90000
        assert anisha["totalSessions"] == 20
        assert anisha["avgClassSize"] == pytest.approx(6.5)
        assert anisha["efficiency"] == pytest.approx(4500.0)
        assert anisha["conversionRate"] == pytest.approx(45.0)
        assert anisha["monthsActive"] == 2

    def test_top_and_bottom(self, processed):
        assert trainer_rankings(processed, "revenue", "top", 1)["trainerName"].tolist() == ["Anisha Shah"]
        assert trainer_rankings(processed, "revenue", "bottom", 1)["trainerName"].tolist() == ["Vivaran Dhasmana"]

    def test_rank_by_conversion(self, processed):
        ranked = trainer_rankings(processed, "conversion", "all")
        assert ranked["conversionRate"].tolist() == pytest.approx([45.0, 20.0])

    def test_unknown_metric(self, processed):
        with pytest.raises(ValueError):
            trainer_rankings(processed, "charisma")


class TestYearOnYear:
    def test_growth_and_order(self, payroll):
        extra = pd.DataFrame(
            [
                payroll_row(teacherName="Ghost Trainer", totalSessions=0, totalCustomers=0, totalPaid=0),
                payroll_row(teacherName="Old Timer", monthYear="Mar 2021"),
            ]
        )
        processed = process_trainer_data(pd.concat([payroll, extra], ignore_index=True))
        table = trainer_year_on_year(processed, 2024)
        assert table["trainerName"].tolist() == ["Anisha Shah", "Vivaran Dhasmana"]

        anisha, vivaran = table.iloc[0], table.iloc[1]
        assert anisha["currentRevenue"] == 90000
        assert anisha["previousRevenue"] == 0
        assert anisha["revenueGrowth"] == 0
        assert anisha["currentMonthsActive"] == 2
        assert vivaran["currentSessions"] == 0
        assert vivaran["previousSessions"] == 10
        assert vivaran["revenueGrowth"] == pytest.approx(-100.0)

    def test_empty(self):
        assert trainer_year_on_year(process_trainer_data(pd.DataFrame()), 2024).empty


def test_payroll_format_comparison(processed):
    table = payroll_format_comparison(processed).set_index("format")
    assert table.loc["Cycle", "sessions"] == 18
    assert table.loc["Cycle", "revenue"] == 90000
    assert table.loc["Barre", "revenue"] == 20000
    assert table.loc["Cycle", "revenueShare"] == pytest.approx(90000 / 110000 * 100)
    assert table.loc["Strength", "classAverageInclEmpty"] == 0


def test_trainer_month_on_month(processed):
    table = trainer_month_on_month(processed)
    assert table["month"].tolist() == ["Feb 2024", "Jan 2024", "Jan 2023"]
    assert table.loc[0, "totalRevenueChange"] == 10000
    assert table.loc[0, "totalRevenueChangePct"] == pytest.approx(25.0)
    assert table.loc[0, "totalRevenueTrend"] == "up"
    assert table.loc[1, "totalRevenueChangePct"] == pytest.approx(100.0)
    assert table.loc[2, "totalRevenueTrend"] == "flat"


class TestFilterPayroll:
    def test_inactive_filters_keep_everything(self, payroll):
        assert len(filter_payroll(payroll, SessionFilterOptions())) == len(payroll)

    def test_date_bounds_select_whole_months(self, payroll):
        filtered = filter_payroll(payroll, SessionFilterOptions(date_start="2024-01-15", date_end="2024-01-20"))
        assert filtered["monthYear"].tolist() == ["Jan 2024"]
        assert filtered["teacherName"].tolist() == ["Anisha Shah"]

    def test_unreadable_month_never_matches_a_date_bound(self):
        payroll = pd.DataFrame([payroll_row(monthYear="Q1 2024"), payroll_row(monthYear="Mar 2024")])
        filtered = filter_payroll(payroll, SessionFilterOptions(date_start="2024-01-01"))
        assert filtered["monthYear"].tolist() == ["Mar 2024"]

    def test_location_and_trainer(self, payroll):
        by_location = filter_payroll(payroll, SessionFilterOptions(location=["Supreme HQ"]))
        assert by_location["teacherName"].tolist() == ["Vivaran Dhasmana"]
        by_trainer = filter_payroll(payroll, SessionFilterOptions(trainer=["Anisha Shah"], location=["Supreme HQ"]))
        assert by_trainer.empty
