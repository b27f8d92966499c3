from __future__ import annotations

import pandas as pd
import pytest

from conftest import client_row
from studio_analytics.features.clients import (
    client_overview,
    client_top_bottom,
    clients_month_on_month,
    clients_year_on_year,
    conversion_breakdown,
    filter_new_clients,
)
from studio_analytics.models.schema import NewClientFilterOptions


def member_ids(df: pd.DataFrame) -> list[str]:
    return df["memberId"].tolist()


class TestFilterNewClients:
    def test_no_filters_keeps_everything(self, clients):
        assert len(filter_new_clients(clients, NewClientFilterOptions())) == len(clients)

    def test_trainer_list(self, clients):
        filtered = filter_new_clients(clients, NewClientFilterOptions(trainer=["Anisha Shah"]))
        assert member_ids(filtered) == ["M1", "M2"]

    def test_location_matches_first_visit_or_home(self):
        df = pd.DataFrame(
            [
                client_row(memberId="A", firstVisitLocation="Kwality House", homeLocation="Bandra"),
                client_row(memberId="B", firstVisitLocation="Bandra", homeLocation="Kwality House"),
                client_row(memberId="C", firstVisitLocation="Kwality House", homeLocation="Kwality House"),
            ]
        )
        filtered = filter_new_clients(df, NewClientFilterOptions(location=["Bandra"]))
        assert member_ids(filtered) == ["A", "B"]

    def test_date_range_drops_unparseable(self, clients):
        filtered = filter_new_clients(clients, NewClientFilterOptions(date_start="2024-01-01", date_end="2024-01-31"))
        assert member_ids(filtered) == ["M1", "M2"]

    def test_ltv_bounds_inclusive(self, clients):
        filtered = filter_new_clients(clients, NewClientFilterOptions(min_ltv=500, max_ltv=3000))
        assert member_ids(filtered) == ["M3", "M4"]

    def test_missing_ltv_counts_as_zero(self):
        df = pd.DataFrame([client_row(memberId="A", ltv="")])
        assert member_ids(filter_new_clients(df, NewClientFilterOptions(max_ltv=0))) == ["A"]

    def test_dimensions_are_anded(self, clients):
        filtered = filter_new_clients(
            clients, NewClientFilterOptions(trainer=["Vivaran Dhasmana"], min_ltv=1000, is_new=["Returning"])
        )
        assert member_ids(filtered) == ["M3"]


class TestConversionBreakdown:
    def test_by_trainer(self, clients):
        table = conversion_breakdown(clients, "trainer").set_index("trainerName")
        anisha = table.loc["Anisha Shah"]
        assert anisha["totalMembers"] == 2
        assert anisha["newMembers"] == 2
        assert anisha["conversionRate"] == pytest.approx(50.0)
        assert anisha["retentionRate"] == pytest.approx(50.0)
        assert anisha["avgLTV"] == pytest.approx(6000.0)
        vivaran = table.loc["Vivaran Dhasmana"]
        assert vivaran["conversionRate"] == 0
        assert vivaran["avgLTV"] == pytest.approx(1750.0)

    def test_totals_row(self, clients):
        table = conversion_breakdown(clients, "membership", with_totals=True)
        total = table.iloc[-1]
        assert total["membershipUsed"] == "Total"
        assert total["totalMembers"] == 4
        assert total["conversionRate"] == pytest.approx(100 / 3)
        assert total["avgLTV"] == pytest.approx(3875.0)

    def test_completeness(self, clients):
        for dimension in ("trainer", "location", "membership", "entity"):
            assert conversion_breakdown(clients, dimension)["totalMembers"].sum() == len(clients)

    def test_unknown_dimension(self, clients):
        with pytest.raises(ValueError):
            conversion_breakdown(clients, "star_sign")

    def test_top_bottom(self, clients):
        bottom = client_top_bottom(clients, "trainer", "avgLTV", "bottom", 1)
        assert bottom["trainerName"].tolist() == ["Vivaran Dhasmana"]


class TestMonthOnMonth:
    def test_seeded_months_newest_first(self, clients, today):
        table = clients_month_on_month(clients, today, "2024-01")
        assert table["month"].tolist() == ["Mar 2024", "Feb 2024", "Jan 2024"]

        march = table.iloc[0]
        assert march["totalMembers"] == 0
        assert march["conversionRate"] == 0

        jan = table.iloc[2]
        assert jan["totalMembers"] == 2
        assert jan["newMembers"] == 2
        assert jan["conversionRate"] == pytest.approx(50.0)
        assert jan["retentionRate"] == pytest.approx(50.0)
        assert jan["avgLTV"] == pytest.approx(6000.0)
        assert jan["avgConversionInterval"] == pytest.approx(5.0)
        assert jan["trialsCompleted"] == 1
        assert jan["avgVisitsPostTrial"] == pytest.approx(4.0)

    def test_outside_window_ignored(self, clients, today):
        early = pd.DataFrame([client_row(memberId="OLD", firstVisitDate="15/12/2023")])
        table = clients_month_on_month(pd.concat([clients, early], ignore_index=True), today, "2024-01")
        assert table["totalMembers"].sum() == 3


class TestYearOnYear:
    def test_current_vs_previous(self, clients):
        last_year = pd.DataFrame(
            [client_row(memberId="P1", firstVisitDate="15/01/2023", conversionStatus="Converted", ltv=2000)]
        )
        table = clients_year_on_year(pd.concat([clients, last_year], ignore_index=True), 2024)
        assert len(table) == 12
        jan = table.iloc[0]
        assert jan["month"] == "Jan"
        assert jan["currentTotalMembers"] == 2
        assert jan["previousTotalMembers"] == 1
        assert jan["totalMembersGrowth"] == pytest.approx(100.0)
        assert jan["currentConversionRate"] == pytest.approx(50.0)
        assert jan["previousConversionRate"] == pytest.approx(100.0)
        assert jan["conversionRateGrowth"] == pytest.approx(-50.0)

    def test_no_previous_year_gives_zero_growth(self, clients):
        table = clients_year_on_year(clients, 2024)
        assert table.loc[0, "totalMembersGrowth"] == 0
        assert table.loc[0, "conversionRateGrowth"] == 0


def test_client_overview(clients):
    cards = client_overview(clients).set_index("metric")["value"]
    assert cards["totalClients"] == 4
    assert cards["newMembers"] == 3
    assert cards["conversionRate"] == pytest.approx(100 / 3)
    assert cards["avgLTV"] == pytest.approx(3875.0)
    assert cards["avgConversionDays"] == pytest.approx(5.0)
