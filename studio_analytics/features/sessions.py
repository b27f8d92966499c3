from __future__ import annotations

import numpy as np
import pandas as pd

from studio_analytics.config.constants import (
    EFFICIENCY_WEIGHTS,
    FORMAT_FAMILIES,
    OPTIMIZED_RANGE,
    OVERSOLD_ABOVE,
    PERFORMANCE_BANDS,
    PERFORMANCE_FALLBACK,
    UNDERUTILIZED_BELOW,
)
from studio_analytics.features.aggregate import (
    add_period_changes,
    class_format,
    date_mask,
    derive_ratios,
    group_and_aggregate,
    label_or_unknown,
    safe_divide,
    safe_ratio,
)
from studio_analytics.io.loaders import add_month_keys, month_label, normalize_sessions
from studio_analytics.models.schema import SessionFilterOptions

DIMENSIONS = {
    "format": "format",
    "trainer": "trainer",
    "location": "location",
    "time_slot": "timeSlot",
    "day": "day",
}

SESSION_ACCUMULATORS = {
    "totalSessions": ("sessionCount", "sum"),
    "totalCapacity": ("capacity", "sum"),
    "totalCheckedIn": ("checkedInCount", "sum"),
    "totalBooked": ("bookedCount", "sum"),
    "totalLateCancelled": ("lateCancelledCount", "sum"),
    "totalRevenue": ("totalPaid", "sum"),
    "emptySessions": ("isEmpty", "sum"),
}

SESSION_RATIOS = {
    "fillRate": ("totalCheckedIn", "totalCapacity", 100),
    "showUpRate": ("totalCheckedIn", "totalBooked", 100),
    "utilizationRate": ("nonEmptySessions", "totalSessions", 100),
    "lateCancelRate": ("totalLateCancelled", "totalBooked", 100),
    "avgAttendance": ("totalCheckedIn", "totalSessions", 1),
    "avgRevenue": ("totalRevenue", "totalSessions", 1),
    "revenuePerAttendee": ("totalRevenue", "totalCheckedIn", 1),
}

MONTHLY_CHANGE_METRICS = [
    "totalSessions",
    "totalCheckedIn",
    "totalRevenue",
    "fillRate",
    "showUpRate",
    "utilizationRate",
    "avgRevenue",
]

PAYMENT_TYPE_COLUMNS = {
    "membership": "checkedInsWithMemberships",
    "packages": "checkedInsWithPackages",
    "introOffers": "checkedInsWithIntroOffers",
    "singleClasses": "checkedInsWithSingleClasses",
}


def prepare_sessions(sessions: pd.DataFrame) -> pd.DataFrame:
    df = normalize_sessions(sessions)
    df["format"] = class_format(df)
    df["trainer"] = label_or_unknown(df["trainerName"])
    df["location"] = label_or_unknown(df["location"])
    df["timeSlot"] = label_or_unknown(df["time"])
    df["day"] = label_or_unknown(df["dayOfWeek"])
    df["sessionCount"] = 1
    df["isEmpty"] = (df["checkedInCount"] == 0).astype(int)
    df["sessionFillRate"] = safe_divide(df["checkedInCount"], df["capacity"], 100)
    df["isRevenueGenerating"] = (df["totalPaid"] > 0).astype(int)
    return df


def _with_session_ratios(buckets: pd.DataFrame) -> pd.DataFrame:
    buckets = buckets.copy()
    buckets["nonEmptySessions"] = buckets["totalSessions"] - buckets["emptySessions"]
    return derive_ratios(buckets, SESSION_RATIOS)


def filter_sessions(sessions: pd.DataFrame, filters: SessionFilterOptions) -> pd.DataFrame:
    df = normalize_sessions(sessions)
    mask = pd.Series(True, index=df.index)
    if filters.date_start or filters.date_end:
        mask &= date_mask(df["date"], filters.date_start, filters.date_end)
    if filters.location:
        mask &= df["location"].isin(filters.location)
    if filters.trainer:
        mask &= df["trainerName"].isin(filters.trainer)
    if filters.class_format:
        mask &= class_format(df).isin(filters.class_format)
    return df[mask].reset_index(drop=True)


def summarize_by(sessions: pd.DataFrame, dimension: str = "format", sort_by: str = "totalSessions") -> pd.DataFrame:
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unknown session dimension {dimension!r}")
    key = DIMENSIONS[dimension]
    df = prepare_sessions(sessions)

    buckets = group_and_aggregate(df, key, {**SESSION_ACCUMULATORS, "formatCount": ("format", "nunique")})
    buckets = _with_session_ratios(buckets)
    return buckets.sort_values(sort_by, ascending=False, kind="stable").reset_index(drop=True)


def _fill_band(df: pd.DataFrame) -> pd.Series:
    if df.empty:
        return pd.Series(dtype=object, index=df.index)
    low, high = OPTIMIZED_RANGE
    fill = df["sessionFillRate"]
    conditions = [
        df["checkedInCount"] == 0,
        fill < UNDERUTILIZED_BELOW,
        (fill >= low) & (fill <= high),
        fill > OVERSOLD_ABOVE,
    ]
    return pd.Series(
        np.select(conditions, ["empty", "underutilized", "optimized", "oversold"], default="moderate"),
        index=df.index,
    )


def _performance_category(row: pd.Series) -> tuple[str, str]:
    for threshold, label, advice in PERFORMANCE_BANDS:
        if row["efficiencyScore"] >= threshold:
            category, recommendations = label, [advice]
            break
    else:
        category, recommendations = PERFORMANCE_FALLBACK[0], [PERFORMANCE_FALLBACK[1]]

    if row["fillRate"] < 60:
        recommendations.append("Increase marketing")
    if row["emptySessions"] > row["totalSessions"] * 0.1:
        recommendations.append("Review scheduling")
    if row["revenueEfficiency"] < 70:
        recommendations.append("Improve monetization")
    return category, "; ".join(recommendations)


def format_efficiency(sessions: pd.DataFrame) -> pd.DataFrame:
    df = prepare_sessions(sessions)
    band = _fill_band(df)
    for name in ("underutilized", "optimized", "oversold"):
        df[f"is_{name}"] = (band == name).astype(int)

    buckets = group_and_aggregate(
        df,
        "format",
        {
            **SESSION_ACCUMULATORS,
            "underutilizedSessions": ("is_underutilized", "sum"),
            "optimizedSessions": ("is_optimized", "sum"),
            "oversoldSessions": ("is_oversold", "sum"),
            "revenueGeneratingSessions": ("isRevenueGenerating", "sum"),
        },
    )
    buckets = _with_session_ratios(buckets)
    if buckets.empty:
        return buckets

    buckets["weightedSessions"] = (
        buckets["optimizedSessions"] * EFFICIENCY_WEIGHTS["optimized"]
        + buckets["oversoldSessions"] * EFFICIENCY_WEIGHTS["oversold"]
        + buckets["underutilizedSessions"] * EFFICIENCY_WEIGHTS["underutilized"]
    )
    buckets["scoreBase"] = buckets["totalSessions"] * 100
    buckets = derive_ratios(
        buckets,
        {
            "optimizationRate": ("optimizedSessions", "totalSessions", 100),
            "efficiencyScore": ("weightedSessions", "scoreBase", 100),
            "revenueEfficiency": ("revenueGeneratingSessions", "totalSessions", 100),
            "revenuePerCapacity": ("totalRevenue", "totalCapacity", 1),
        },
    ).drop(columns=["weightedSessions", "scoreBase"])

    labels = buckets.apply(_performance_category, axis=1, result_type="expand")
    buckets["category"] = labels[0]
    buckets["recommendations"] = labels[1]
    return buckets.sort_values("efficiencyScore", ascending=False, kind="stable").reset_index(drop=True)


def time_slot_efficiency(sessions: pd.DataFrame) -> pd.DataFrame:
    df = prepare_sessions(sessions)
    df["isOptimized"] = (_fill_band(df) == "optimized").astype(int)

    buckets = group_and_aggregate(
        df,
        "timeSlot",
        {
            **SESSION_ACCUMULATORS,
            "optimizedSessions": ("isOptimized", "sum"),
            "formatCount": ("format", "nunique"),
        },
    )
    buckets = _with_session_ratios(buckets)
    buckets = derive_ratios(buckets, {"optimizationRate": ("optimizedSessions", "totalSessions", 100)})
    # fill fraction (not percent) times revenue per session
    buckets["efficiencyScore"] = [
        safe_ratio(att, cap) * safe_ratio(rev, n) if n > 0 and cap > 0 else 0.0
        for att, cap, rev, n in zip(
            buckets["totalCheckedIn"], buckets["totalCapacity"], buckets["totalRevenue"], buckets["totalSessions"]
        )
    ]
    return buckets.sort_values("timeSlot", kind="stable").reset_index(drop=True)


def payment_breakdown(sessions: pd.DataFrame) -> pd.DataFrame:
    df = prepare_sessions(sessions)
    df["paidCount"] = df[list(PAYMENT_TYPE_COLUMNS.values())].sum(axis=1) if not df.empty else 0

    buckets = group_and_aggregate(
        df,
        "format",
        {
            **SESSION_ACCUMULATORS,
            **{name: (col, "sum") for name, col in PAYMENT_TYPE_COLUMNS.items()},
            "paidAttendees": ("paidCount", "sum"),
            "revenueGeneratingSessions": ("isRevenueGenerating", "sum"),
        },
    )
    buckets = _with_session_ratios(buckets)
    if not buckets.empty:
        buckets["freeAttendees"] = buckets["totalCheckedIn"] - buckets["paidAttendees"]
    buckets = derive_ratios(
        buckets,
        {
            "revenuePerCapacity": ("totalRevenue", "totalCapacity", 1),
            "revenueEfficiency": ("revenueGeneratingSessions", "totalSessions", 100),
            "paidAttendeeRate": ("paidAttendees", "totalCheckedIn", 100),
            "monetizationRate": ("paidAttendees", "totalCapacity", 100),
        },
    )
    return buckets.sort_values("totalRevenue", ascending=False, kind="stable").reset_index(drop=True)


def sessions_month_on_month(sessions: pd.DataFrame) -> pd.DataFrame:
    df = add_month_keys(prepare_sessions(sessions), "date", "session")
    buckets = group_and_aggregate(df, "monthKey", {**SESSION_ACCUMULATORS, "formatCount": ("format", "nunique")})
    buckets = _with_session_ratios(buckets)
    if buckets.empty:
        return buckets
    buckets["month"] = [month_label(k) for k in buckets["monthKey"]]
    buckets = buckets.sort_values("monthKey", ascending=False, kind="stable")
    return add_period_changes(buckets, MONTHLY_CHANGE_METRICS)


def _family_mask(df: pd.DataFrame, keywords: list[str]) -> pd.Series:
    text = (df["cleanedClass"].str.lower() + " | " + df["classType"].str.lower())
    return text.apply(lambda t: any(k in t for k in keywords))


def format_comparison(sessions: pd.DataFrame) -> pd.DataFrame:
    """Side-by-side headline metrics per format family with a winner per row."""
    df = prepare_sessions(sessions)
    stats = {}
    for family, keywords in FORMAT_FAMILIES.items():
        subset = df[_family_mask(df, keywords)] if not df.empty else df
        sessions_n = len(subset)
        attendance = float(subset["checkedInCount"].sum())
        capacity = float(subset["capacity"].sum())
        stats[family] = {
            "totalSessions": sessions_n,
            "totalAttendance": attendance,
            "totalCapacity": capacity,
            "avgFillRate": safe_ratio(attendance, capacity, 100),
            "avgSessionSize": safe_ratio(attendance, sessions_n),
            "emptySessions": int(subset["isEmpty"].sum()),
        }

    # Families with no classes on the schedule don't compete.
    active = [family for family in stats if stats[family]["totalSessions"] > 0]
    rows = []
    for metric in ["totalSessions", "totalAttendance", "totalCapacity", "avgFillRate", "avgSessionSize", "emptySessions"]:
        values = {family: stats[family][metric] for family in stats}
        lower_is_better = metric == "emptySessions"
        ranked = sorted(((f, values[f]) for f in active), key=lambda kv: kv[1], reverse=not lower_is_better)
        if not ranked:
            winner = "n/a"
        elif len(ranked) > 1 and ranked[0][1] == ranked[1][1]:
            winner = "tie"
        else:
            winner = ranked[0][0]
        rows.append({"metric": metric, **values, "winner": winner})
    return pd.DataFrame(rows)


def session_overview(sessions: pd.DataFrame) -> pd.DataFrame:
    df = prepare_sessions(sessions)
    total = len(df)
    capacity = float(df["capacity"].sum())
    checked_in = float(df["checkedInCount"].sum())
    booked = float(df["bookedCount"].sum())
    revenue = float(df["totalPaid"].sum())
    late = float(df["lateCancelledCount"].sum())
    empty = int(df["isEmpty"].sum())

    rows = [
        {"metric": "totalSessions", "value": total},
        {"metric": "totalAttendance", "value": checked_in},
        {"metric": "totalCapacity", "value": capacity},
        {"metric": "fillRate", "value": safe_ratio(checked_in, capacity, 100)},
        {"metric": "showUpRate", "value": safe_ratio(checked_in, booked, 100)},
        {"metric": "totalRevenue", "value": revenue},
        {"metric": "avgRevenue", "value": safe_ratio(revenue, total)},
        {"metric": "emptySessions", "value": empty},
        {"metric": "utilizationRate", "value": safe_ratio(total - empty, total, 100)},
        {"metric": "lateCancellations", "value": late},
        {"metric": "lateCancelRate", "value": safe_ratio(late, booked, 100)},
        {"metric": "uniqueTrainers", "value": df["trainer"].nunique()},
        {"metric": "uniqueFormats", "value": df["format"].nunique()},
    ]
    return pd.DataFrame(rows)
