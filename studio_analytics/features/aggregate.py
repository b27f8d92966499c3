from __future__ import annotations

from typing import Iterable, Mapping

import pandas as pd

from studio_analytics.config.constants import UNKNOWN, VIEW_MODES
from studio_analytics.io.loaders import parse_studio_date, to_dates


def label_or_unknown(series: pd.Series) -> pd.Series:
    cleaned = series.fillna("").astype(str).str.strip()
    return cleaned.where(cleaned != "", UNKNOWN)


def class_format(df: pd.DataFrame) -> pd.Series:
    """cleanedClass, falling back to classType, then Unknown."""
    cleaned = df["cleanedClass"].fillna("").astype(str).str.strip()
    raw = df["classType"].fillna("").astype(str).str.strip()
    return label_or_unknown(cleaned.where(cleaned != "", raw))


def safe_ratio(numerator: float, denominator: float, scale: float = 1.0) -> float:
    return numerator / denominator * scale if denominator > 0 else 0.0


def safe_divide(numerator: pd.Series, denominator: pd.Series, scale: float = 1.0) -> pd.Series:
    numerator = numerator.astype(float)
    denominator = denominator.astype(float)
    valid = denominator > 0
    result = pd.Series(0.0, index=numerator.index)
    result[valid] = numerator[valid] / denominator[valid] * scale
    return result


def group_and_aggregate(
    records: pd.DataFrame,
    keys: str | list[str],
    accumulators: Mapping[str, tuple[str, object]],
) -> pd.DataFrame:
    """One row per distinct key, in order of first appearance.

    ``accumulators`` maps an output column to ``(source column, reduction)``,
    the same shape pandas named aggregation takes.
    """
    keys = [keys] if isinstance(keys, str) else list(keys)
    if records.empty:
        return pd.DataFrame(columns=keys + list(accumulators))
    grouped = records.groupby(keys, sort=False, dropna=False)
    return grouped.agg(**accumulators).reset_index()


def derive_ratios(buckets: pd.DataFrame, specs: Mapping[str, tuple[str, str, float]]) -> pd.DataFrame:
    """Add ``name = numerator / denominator * scale`` columns (0 on a zero denominator).

    Specs are applied in order, so later specs may use earlier outputs.
    """
    out = buckets.copy()
    for name, (numerator, denominator, scale) in specs.items():
        if out.empty:
            out[name] = pd.Series(dtype=float)
            continue
        out[name] = safe_divide(out[numerator], out[denominator], scale)
    return out


def rank_buckets(
    buckets: pd.DataFrame,
    metric: str,
    view_mode: str = "top",
    show_count: int = 5,
) -> pd.DataFrame:
    """Top/bottom selection on a stable descending sort.

    ``bottom`` reverses the descending order rather than sorting ascending,
    so tied rows come back in reverse insertion order.
    """
    if view_mode not in VIEW_MODES:
        raise ValueError(f"view_mode must be one of {VIEW_MODES}, got {view_mode!r}")
    if metric not in buckets.columns:
        raise ValueError(f"Unknown metric {metric!r}")

    ordered = buckets.sort_values(metric, ascending=False, kind="stable")
    if view_mode == "bottom":
        ordered = ordered.iloc[::-1]
    if view_mode != "all":
        ordered = ordered.head(show_count)
    return ordered.reset_index(drop=True)


def period_change(current: float, previous: float) -> dict[str, float]:
    change = current - previous
    percentage = change / previous * 100 if previous > 0 else 0.0
    return {"value": change, "percentage": percentage}


def trend_direction(percentage: float) -> str:
    if percentage > 0:
        return "up"
    if percentage < 0:
        return "down"
    return "flat"


def add_period_changes(frame: pd.DataFrame, metrics: Iterable[str]) -> pd.DataFrame:
    """Compare each row with the next one; ``frame`` must be ordered newest first.

    The oldest row has nothing to compare against and gets zero change.
    """
    out = frame.reset_index(drop=True).copy()
    for metric in metrics:
        current = out[metric].astype(float)
        previous = current.shift(-1)
        has_previous = previous.notna()
        value = (current - previous).where(has_previous, 0.0)
        percentage = safe_divide(current - previous.fillna(0.0), previous.fillna(0.0), 100)
        out[f"{metric}Change"] = value
        out[f"{metric}ChangePct"] = percentage
        out[f"{metric}Trend"] = [trend_direction(p) for p in percentage]
    return out


def year_over_year(current: pd.Series, previous: pd.Series) -> pd.Series:
    return safe_divide(current.astype(float) - previous.astype(float), previous, 100)


def date_mask(dates: pd.Series, start: object = None, end: object = None) -> pd.Series:
    """True where the date parses and falls inside the inclusive bounds.

    Rows whose date does not parse never match.
    """
    parsed = to_dates(dates)
    mask = parsed.notna()
    start_ts = parse_studio_date(start) if start else None
    end_ts = parse_studio_date(end) if end else None
    if start_ts is not None:
        mask &= parsed >= start_ts
    if end_ts is not None:
        mask &= parsed <= end_ts
    return mask
