from __future__ import annotations

from datetime import date

import pandas as pd

from studio_analytics.config.constants import CONVERTED, MONTH_ABBR, NEW_MARKER, RETAINED
from studio_analytics.features.aggregate import (
    date_mask,
    derive_ratios,
    group_and_aggregate,
    label_or_unknown,
    rank_buckets,
    safe_ratio,
    year_over_year,
)
from studio_analytics.io.loaders import add_month_keys, month_label, normalize_clients, seed_months
from studio_analytics.models.schema import NewClientFilterOptions

DIMENSIONS = {
    "trainer": "trainerName",
    "location": "firstVisitLocation",
    "membership": "membershipUsed",
    "entity": "firstVisitEntityName",
}

# Exact-match list filters: option field -> column.
LIST_FILTERS = {
    "home_location": "homeLocation",
    "trainer": "trainerName",
    "payment_method": "paymentMethod",
    "retention_status": "retentionStatus",
    "conversion_status": "conversionStatus",
    "is_new": "isNew",
}

CLIENT_ACCUMULATORS = {
    "totalMembers": ("clientCount", "sum"),
    "newMembers": ("isNewMember", "sum"),
    "converted": ("isConverted", "sum"),
    "retained": ("isRetained", "sum"),
    "totalLTV": ("ltv", "sum"),
}

MONTHLY_ACCUMULATORS = {
    **CLIENT_ACCUMULATORS,
    "conversionDays": ("spanDays", "sum"),
    "conversionsTimed": ("hasSpan", "sum"),
    "postTrialVisits": ("postTrialVisits", "sum"),
    "trialsCompleted": ("hasPostTrialVisits", "sum"),
}

RATE_RATIOS = {
    "conversionRate": ("converted", "newMembers", 100),
    "retentionRate": ("retained", "newMembers", 100),
    "avgLTV": ("totalLTV", "totalMembers", 1),
}

MONTHLY_RATIOS = {
    **RATE_RATIOS,
    "avgConversionInterval": ("conversionDays", "conversionsTimed", 1),
    "avgVisitsPostTrial": ("postTrialVisits", "trialsCompleted", 1),
}


def prepare_clients(clients: pd.DataFrame) -> pd.DataFrame:
    df = normalize_clients(clients)
    for column in DIMENSIONS.values():
        df[column] = label_or_unknown(df[column])
    df["clientCount"] = 1
    df["isNewMember"] = df["isNew"].str.lower().str.contains(NEW_MARKER, regex=False).astype(int)
    df["isConverted"] = (df["conversionStatus"] == CONVERTED).astype(int)
    df["isRetained"] = (df["retentionStatus"] == RETAINED).astype(int)
    df["hasSpan"] = (df["conversionSpan"] > 0).astype(int)
    df["spanDays"] = df["conversionSpan"].where(df["conversionSpan"] > 0, 0)
    df["hasPostTrialVisits"] = (df["visitsPostTrial"] > 0).astype(int)
    df["postTrialVisits"] = df["visitsPostTrial"].where(df["visitsPostTrial"] > 0, 0)
    return df


def filter_new_clients(clients: pd.DataFrame, filters: NewClientFilterOptions) -> pd.DataFrame:
    """AND across the active filters; a list filter matches any of its values.

    ``location`` admits a client whose first-visit or home location is
    selected. Date bounds drop clients whose first visit date does not parse.
    """
    df = normalize_clients(clients)
    mask = pd.Series(True, index=df.index)
    if filters.date_start or filters.date_end:
        mask &= date_mask(df["firstVisitDate"], filters.date_start, filters.date_end)
    if filters.location:
        mask &= df["firstVisitLocation"].isin(filters.location) | df["homeLocation"].isin(filters.location)
    for option, column in LIST_FILTERS.items():
        selected = getattr(filters, option)
        if selected:
            mask &= df[column].isin(selected)
    if filters.min_ltv is not None:
        mask &= df["ltv"] >= filters.min_ltv
    if filters.max_ltv is not None:
        mask &= df["ltv"] <= filters.max_ltv
    return df[mask].reset_index(drop=True)


def _breakdown_ratios(buckets: pd.DataFrame) -> pd.DataFrame:
    return derive_ratios(
        buckets,
        {
            "conversionRate": ("converted", "newMembers", 100),
            "retentionRate": ("retained", "totalMembers", 100),
            "avgLTV": ("totalLTV", "totalMembers", 1),
        },
    )


def conversion_breakdown(clients: pd.DataFrame, dimension: str = "trainer", with_totals: bool = False) -> pd.DataFrame:
    """Clients, conversions, retention and LTV per trainer, location, membership or entity."""
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown client dimension {dimension!r}; expected one of {sorted(DIMENSIONS)}")
    key = DIMENSIONS[dimension]
    df = prepare_clients(clients)

    buckets = group_and_aggregate(df, key, CLIENT_ACCUMULATORS)
    buckets = _breakdown_ratios(buckets)
    buckets = buckets.sort_values("totalMembers", ascending=False, kind="stable").reset_index(drop=True)
    if with_totals and not buckets.empty:
        totals = buckets[list(CLIENT_ACCUMULATORS)].sum().to_frame().T
        totals.insert(0, key, "Total")
        buckets = pd.concat([buckets, _breakdown_ratios(totals)], ignore_index=True)
    return buckets


def client_top_bottom(
    clients: pd.DataFrame,
    dimension: str = "trainer",
    metric: str = "conversionRate",
    view_mode: str = "top",
    show_count: int = 5,
) -> pd.DataFrame:
    return rank_buckets(conversion_breakdown(clients, dimension), metric, view_mode, show_count)


def clients_month_on_month(clients: pd.DataFrame, today: date, start: str = "2024-01") -> pd.DataFrame:
    """Every month from ``start`` to ``today``, newest first, zero rows included.

    Clients whose first visit falls outside the window are ignored.
    """
    months = seed_months(start, today)
    df = add_month_keys(prepare_clients(clients), "firstVisitDate", "client")
    df = df[df["monthKey"].isin(months)]

    buckets = group_and_aggregate(df, "monthKey", MONTHLY_ACCUMULATORS)
    table = pd.DataFrame({"monthKey": months}).merge(buckets, on="monthKey", how="left")
    counts = list(MONTHLY_ACCUMULATORS)
    table[counts] = table[counts].fillna(0).astype(float)
    table = derive_ratios(table, MONTHLY_RATIOS)
    table.insert(1, "month", [month_label(k) for k in table["monthKey"]])
    return table.drop(columns=["conversionDays", "conversionsTimed", "postTrialVisits"])


def _year_stats(df: pd.DataFrame, year: int, prefix: str) -> pd.DataFrame:
    subset = df[df["parsedDate"].dt.year == year].copy()
    subset["monthNumber"] = subset["parsedDate"].dt.month
    buckets = group_and_aggregate(subset, "monthNumber", CLIENT_ACCUMULATORS)
    buckets["monthNumber"] = buckets["monthNumber"].astype(int)
    table = pd.DataFrame({"monthNumber": range(1, 13)}).merge(buckets, on="monthNumber", how="left")
    counts = list(CLIENT_ACCUMULATORS)
    table[counts] = table[counts].fillna(0).astype(float)
    table = derive_ratios(table, RATE_RATIOS)
    keep = counts + list(RATE_RATIOS)
    return table[["monthNumber"] + keep].rename(columns={c: f"{prefix}{c[0].upper()}{c[1:]}" for c in keep})


def clients_year_on_year(clients: pd.DataFrame, current_year: int) -> pd.DataFrame:
    """Jan..Dec rows comparing ``current_year`` with the year before.

    Count growth is a percentage change; rate growth is the difference in
    percentage points, reported as 0 when last year's rate was 0.
    """
    df = add_month_keys(prepare_clients(clients), "firstVisitDate", "client")
    table = _year_stats(df, current_year, "current").merge(
        _year_stats(df, current_year - 1, "previous"), on="monthNumber"
    )
    table.insert(0, "month", [MONTH_ABBR[m - 1] for m in table["monthNumber"]])

    for name in ("TotalMembers", "NewMembers", "Converted", "Retained", "AvgLTV"):
        growth = f"{name[0].lower()}{name[1:]}Growth"
        table[growth] = year_over_year(table[f"current{name}"], table[f"previous{name}"])
    for name in ("ConversionRate", "RetentionRate"):
        previous = table[f"previous{name}"]
        growth = f"{name[0].lower()}{name[1:]}Growth"
        table[growth] = (table[f"current{name}"] - previous).where(previous > 0, 0.0)
    return table.drop(columns=["monthNumber"])


def client_overview(clients: pd.DataFrame) -> pd.DataFrame:
    df = prepare_clients(clients)
    total = len(df)
    new_members = int(df["isNewMember"].sum())
    converted = int(df["isConverted"].sum())
    retained = int(df["isRetained"].sum())
    total_ltv = float(df["ltv"].sum())
    timed = df[(df["isConverted"] == 1) & (df["hasSpan"] == 1)]

    rows = [
        {"metric": "totalClients", "value": total},
        {"metric": "newMembers", "value": new_members},
        {"metric": "convertedMembers", "value": converted},
        {"metric": "retainedMembers", "value": retained},
        {"metric": "conversionRate", "value": safe_ratio(converted, new_members, 100)},
        {"metric": "retentionRate", "value": safe_ratio(retained, new_members, 100)},
        {"metric": "trialToMemberRate", "value": safe_ratio(converted, total, 100)},
        {"metric": "totalLTV", "value": total_ltv},
        {"metric": "avgLTV", "value": safe_ratio(total_ltv, total)},
        {"metric": "avgConversionDays", "value": safe_ratio(float(timed["conversionSpan"].sum()), len(timed))},
        {"metric": "trialsWithVisits", "value": int(df["hasPostTrialVisits"].sum())},
        {"metric": "payingClients", "value": int((df["ltv"] > 0).sum())},
    ]
    return pd.DataFrame(rows)
