from __future__ import annotations

import logging

import pandas as pd

from studio_analytics.config.constants import UNKNOWN
from studio_analytics.features.aggregate import (
    add_period_changes,
    derive_ratios,
    group_and_aggregate,
    label_or_unknown,
    rank_buckets,
    safe_divide,
    safe_ratio,
    year_over_year,
)
from studio_analytics.io.loaders import (
    month_key,
    month_label,
    normalize_payroll,
    parse_month_year,
    parse_percent,
    parse_studio_date,
)
from studio_analytics.models.schema import SessionFilterOptions

logger = logging.getLogger(__name__)

FAMILY_PREFIXES = {"Cycle": "cycle", "Barre": "barre", "Strength": "strength"}

# The payroll export has no capacity column; 20 spots per class is a studio-wide estimate.
ESTIMATED_CAPACITY_PER_SESSION = 20

RANKING_METRICS = {
    "revenue": "totalRevenue",
    "sessions": "totalSessions",
    "customers": "totalCustomers",
    "efficiency": "efficiency",
    "classAverage": "avgClassSize",
    "conversion": "conversionRate",
    "retention": "retentionRate",
    "emptySessions": "emptySessions",
}

TRAINER_ACCUMULATORS = {
    "totalSessions": ("totalSessions", "sum"),
    "emptySessions": ("emptySessions", "sum"),
    "nonEmptySessions": ("nonEmptySessions", "sum"),
    "totalCustomers": ("totalCustomers", "sum"),
    "totalRevenue": ("totalRevenue", "sum"),
}

MONTHLY_CHANGE_METRICS = ["totalSessions", "totalCustomers", "totalRevenue", "classAverageInclEmpty"]


def filter_payroll(payroll: pd.DataFrame, filters: SessionFilterOptions) -> pd.DataFrame:
    """Apply the session location/trainer/date filters to monthly payroll rows.

    Payroll is monthly, so date bounds keep every month they touch. Rows with
    an unreadable ``monthYear`` never match a date bound.
    """
    df = normalize_payroll(payroll)
    mask = pd.Series(True, index=df.index)
    if filters.date_start or filters.date_end:
        keys = pd.Series([parse_month_year(v) for v in df["monthYear"]], index=df.index, dtype=object)
        mask &= keys.notna()
        start = parse_studio_date(filters.date_start) if filters.date_start else None
        end = parse_studio_date(filters.date_end) if filters.date_end else None
        if start is not None:
            mask &= keys.fillna("") >= month_key(start)
        if end is not None:
            mask &= keys.fillna("") <= month_key(end)
    if filters.location:
        mask &= df["location"].isin(filters.location)
    if filters.trainer:
        mask &= df["teacherName"].isin(filters.trainer)
    return df[mask].reset_index(drop=True)


def process_trainer_data(payroll: pd.DataFrame) -> pd.DataFrame:
    """One row per payroll record with the derived trainer metrics."""
    df = normalize_payroll(payroll)
    df["trainerName"] = label_or_unknown(df["teacherName"])
    df["location"] = label_or_unknown(df["location"])
    df["monthKey"] = [parse_month_year(v) for v in df["monthYear"]]
    unparsed = int(sum(k is None for k in df["monthKey"]))
    if unparsed:
        logger.warning("%d payroll rows have an unreadable monthYear", unparsed)
    df["year"] = [int(k[:4]) if k else 0 for k in df["monthKey"]]

    df["emptySessions"] = df["totalEmptySessions"]
    df["nonEmptySessions"] = df["totalNonEmptySessions"]
    df["totalRevenue"] = df["totalPaid"]
    df["conversionRate"] = [parse_percent(v) for v in df["conversion"]]
    df["retentionRate"] = [parse_percent(v) for v in df["retention"]]

    df["classAverageInclEmpty"] = safe_divide(df["totalCustomers"], df["totalSessions"])
    df["classAverageExclEmpty"] = safe_divide(df["totalCustomers"], df["nonEmptySessions"])
    df["utilizationRate"] = safe_divide(df["nonEmptySessions"], df["totalSessions"], 100)
    df["revenuePerSession"] = safe_divide(df["totalRevenue"], df["totalSessions"])
    df["revenuePerCustomer"] = safe_divide(df["totalRevenue"], df["totalCustomers"])
    df["estimatedFillRate"] = safe_divide(
        df["totalCustomers"], df["totalSessions"] * ESTIMATED_CAPACITY_PER_SESSION, 100
    )
    df["consistencyScore"] = (
        df["nonEmptySessions"] / df["totalSessions"].clip(lower=1) * 100
    ).clip(upper=100)

    family_sessions = pd.DataFrame(
        {family: df[f"{prefix}Sessions"] for family, prefix in FAMILY_PREFIXES.items()}, index=df.index
    )
    for family, prefix in FAMILY_PREFIXES.items():
        df[f"{prefix}Share"] = safe_divide(family_sessions[family], df["totalSessions"], 100)
    if df.empty:
        df["topFormat"] = pd.Series(dtype=object)
    else:
        df["topFormat"] = family_sessions.idxmax(axis=1).where(family_sessions.sum(axis=1) > 0, UNKNOWN)
    return df


def trainer_summary(processed: pd.DataFrame) -> pd.DataFrame:
    """Per-trainer totals across every month in ``processed``."""
    buckets = group_and_aggregate(
        processed,
        "trainerName",
        {
            "location": ("location", "first"),
            **TRAINER_ACCUMULATORS,
            "conversionRate": ("conversionRate", "mean"),
            "retentionRate": ("retentionRate", "mean"),
            "monthsActive": ("totalSessions", "count"),
        },
    )
    return derive_ratios(
        buckets,
        {
            "avgClassSize": ("totalCustomers", "totalSessions", 1),
            "avgClassSizeExclEmpty": ("totalCustomers", "nonEmptySessions", 1),
            "efficiency": ("totalRevenue", "totalSessions", 1),
            "utilizationRate": ("nonEmptySessions", "totalSessions", 100),
        },
    )


def trainer_rankings(
    processed: pd.DataFrame,
    metric: str = "revenue",
    view_mode: str = "top",
    show_count: int = 5,
) -> pd.DataFrame:
    if metric not in RANKING_METRICS:
        raise ValueError(f"Unknown trainer metric {metric!r}; expected one of {sorted(RANKING_METRICS)}")
    return rank_buckets(trainer_summary(processed), RANKING_METRICS[metric], view_mode, show_count)


def _year_totals(processed: pd.DataFrame, year: int, prefix: str) -> pd.DataFrame:
    subset = processed[processed["year"] == year]
    buckets = group_and_aggregate(
        subset,
        "trainerName",
        {
            "Sessions": ("totalSessions", "sum"),
            "Revenue": ("totalRevenue", "sum"),
            "Customers": ("totalCustomers", "sum"),
            "MonthsActive": ("totalSessions", "count"),
        },
    )
    buckets = derive_ratios(
        buckets,
        {
            "ClassSize": ("Customers", "Sessions", 1),
            "RevenuePerSession": ("Revenue", "Sessions", 1),
        },
    )
    return buckets.rename(columns={c: f"{prefix}{c}" for c in buckets.columns if c != "trainerName"})


def trainer_year_on_year(processed: pd.DataFrame, current_year: int) -> pd.DataFrame:
    window = processed[processed["year"].isin([current_year, current_year - 1])]
    table = group_and_aggregate(window, "trainerName", {"location": ("location", "first")})
    for year, prefix in ((current_year, "current"), (current_year - 1, "previous")):
        table = table.merge(_year_totals(window, year, prefix), on="trainerName", how="left")

    value_cols = [c for c in table.columns if c.startswith(("current", "previous"))]
    table[value_cols] = table[value_cols].fillna(0).astype(float)
    for name in ("Sessions", "Revenue", "Customers", "ClassSize"):
        growth = f"{name[0].lower()}{name[1:]}Growth"
        table[growth] = year_over_year(table[f"current{name}"], table[f"previous{name}"])

    active = (table["currentSessions"] > 0) | (table["previousSessions"] > 0)
    table = table[active]
    return table.sort_values("revenueGrowth", ascending=False, kind="stable").reset_index(drop=True)


def payroll_format_comparison(processed: pd.DataFrame) -> pd.DataFrame:
    all_sessions = sum(float(processed[f"{p}Sessions"].sum()) for p in FAMILY_PREFIXES.values())
    all_revenue = sum(float(processed[f"{p}Paid"].sum()) for p in FAMILY_PREFIXES.values())

    rows = []
    for family, prefix in FAMILY_PREFIXES.items():
        sessions = float(processed[f"{prefix}Sessions"].sum())
        empty = float(processed[f"empty{family}Sessions"].sum())
        non_empty = float(processed[f"nonEmpty{family}Sessions"].sum())
        customers = float(processed[f"{prefix}Customers"].sum())
        revenue = float(processed[f"{prefix}Paid"].sum())
        rows.append(
            {
                "format": family,
                "sessions": sessions,
                "emptySessions": empty,
                "nonEmptySessions": non_empty,
                "customers": customers,
                "revenue": revenue,
                "classAverageInclEmpty": safe_ratio(customers, sessions),
                "classAverageExclEmpty": safe_ratio(customers, non_empty),
                "revenuePerSession": safe_ratio(revenue, sessions),
                "revenuePerCustomer": safe_ratio(revenue, customers),
                "utilizationRate": safe_ratio(non_empty, sessions, 100),
                "sessionShare": safe_ratio(sessions, all_sessions, 100),
                "revenueShare": safe_ratio(revenue, all_revenue, 100),
            }
        )
    return pd.DataFrame(rows)


def trainer_month_on_month(processed: pd.DataFrame) -> pd.DataFrame:
    dated = processed[processed["monthKey"].notna()]
    buckets = group_and_aggregate(
        dated,
        "monthKey",
        {
            **TRAINER_ACCUMULATORS,
            "activeTrainers": ("trainerName", "nunique"),
            "newMembers": ("new", "sum"),
            "convertedMembers": ("converted", "sum"),
            "retainedMembers": ("retained", "sum"),
        },
    )
    buckets = derive_ratios(
        buckets,
        {
            "classAverageInclEmpty": ("totalCustomers", "totalSessions", 1),
            "classAverageExclEmpty": ("totalCustomers", "nonEmptySessions", 1),
            "revenuePerSession": ("totalRevenue", "totalSessions", 1),
            "utilizationRate": ("nonEmptySessions", "totalSessions", 100),
        },
    )
    if buckets.empty:
        return buckets
    buckets["month"] = [month_label(k) for k in buckets["monthKey"]]
    buckets = buckets.sort_values("monthKey", ascending=False, kind="stable")
    return add_period_changes(buckets, MONTHLY_CHANGE_METRICS)
