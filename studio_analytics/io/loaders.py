from __future__ import annotations

import logging
import math
from datetime import date, datetime
from pathlib import Path

import numpy as np
import pandas as pd

from studio_analytics.config.constants import (
    CLIENT_NUMERIC_COLUMNS,
    CLIENT_TEXT_COLUMNS,
    MONTH_ABBR,
    PAYROLL_NUMERIC_COLUMNS,
    PAYROLL_TEXT_COLUMNS,
    SESSION_NUMERIC_COLUMNS,
    SESSION_TEXT_COLUMNS,
)

logger = logging.getLogger(__name__)

DATASETS = {
    "sessions": (SESSION_NUMERIC_COLUMNS, SESSION_TEXT_COLUMNS),
    "payroll": (PAYROLL_NUMERIC_COLUMNS, PAYROLL_TEXT_COLUMNS),
    "new_clients": (CLIENT_NUMERIC_COLUMNS, CLIENT_TEXT_COLUMNS),
}


def parse_numeric(series: pd.Series) -> pd.Series:
    cleaned = series.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(cleaned, errors="coerce").fillna(0)


def parse_percent(value: object) -> float:
    """Read a rate that may be a number or a string such as ``"42.5%"``."""
    if isinstance(value, (int, float, np.number)):
        return 0.0 if pd.isna(value) else float(value)
    text = str(value or "").replace("%", "").replace(",", "").strip()
    try:
        parsed = float(text)
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(parsed) else parsed


def parse_studio_date(value: object) -> pd.Timestamp | None:
    """Parse a sheet date into a midnight timestamp, or ``None``.

    Slash dates are read as DD/MM/YYYY first and retried as MM/DD/YYYY when
    the first reading is not a real calendar date. Anything after the date
    (a time, or ", HH:mm:ss") is ignored.
    """
    if value is None:
        return None
    if isinstance(value, (pd.Timestamp, datetime, date)):
        ts = pd.Timestamp(value)
        if pd.isna(ts):
            return None
        if ts.tzinfo is not None:
            ts = ts.tz_localize(None)
        return ts.normalize()
    if isinstance(value, float) and math.isnan(value):
        return None

    text = str(value).strip()
    if not text:
        return None

    if "/" in text:
        date_part = text.replace(",", " ").split()[0]
        parts = date_part.split("/")
        if len(parts) != 3:
            return None
        try:
            first, second, year = (int(p) for p in parts)
        except ValueError:
            return None
        try:
            return pd.Timestamp(datetime(year, second, first))
        except ValueError:
            pass
        try:
            return pd.Timestamp(datetime(year, first, second))
        except ValueError:
            return None

    ts = pd.to_datetime(text, errors="coerce")
    if pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        ts = ts.tz_localize(None)
    return ts.normalize()


def to_dates(series: pd.Series) -> pd.Series:
    parsed = [parse_studio_date(v) for v in series]
    return pd.Series(pd.to_datetime(parsed), index=series.index, dtype="datetime64[ns]")


def month_key(ts: pd.Timestamp) -> str:
    return f"{ts.year}-{ts.month:02d}"


def month_label(key: str) -> str:
    year, month = key.split("-")
    return f"{MONTH_ABBR[int(month) - 1]} {year}"


def seed_months(start: str, today: date) -> list[str]:
    """Every ``YYYY-MM`` key from ``start`` up to ``today``'s month, newest first."""
    start_year, start_month = (int(p) for p in start.split("-"))
    keys = []
    year, month = today.year, today.month
    while (year, month) >= (start_year, start_month):
        keys.append(f"{year}-{month:02d}")
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return keys


def add_month_keys(df: pd.DataFrame, date_col: str, label: str) -> pd.DataFrame:
    """Attach ``parsedDate``/``monthKey`` and drop rows whose date does not parse."""
    df = df.copy()
    df["parsedDate"] = to_dates(df[date_col]) if date_col in df.columns else pd.NaT
    skipped = int(df["parsedDate"].isna().sum())
    if skipped:
        logger.warning("Skipped %d %s rows with unparseable %s", skipped, label, date_col)
    df = df[df["parsedDate"].notna()].copy()
    df["monthKey"] = [month_key(ts) for ts in df["parsedDate"]]
    return df


def normalize(df: pd.DataFrame, numeric_cols: list[str], text_cols: list[str]) -> pd.DataFrame:
    """Ensure every expected column exists; numerics default to 0 and text to ''."""
    df = df.copy()
    for col in numeric_cols:
        df[col] = parse_numeric(df[col]) if col in df.columns else 0.0
    for col in text_cols:
        if col in df.columns:
            df[col] = df[col].fillna("").astype(str).str.strip()
        else:
            df[col] = ""
    return df


def normalize_sessions(df: pd.DataFrame) -> pd.DataFrame:
    return normalize(df, SESSION_NUMERIC_COLUMNS, SESSION_TEXT_COLUMNS)


def normalize_payroll(df: pd.DataFrame) -> pd.DataFrame:
    return normalize(df, PAYROLL_NUMERIC_COLUMNS, PAYROLL_TEXT_COLUMNS)


def conversion_span_days(first_visit: object, first_purchase: object) -> int:
    visit = parse_studio_date(first_visit)
    purchase = parse_studio_date(first_purchase)
    if visit is None or purchase is None:
        return 0
    days = math.ceil((purchase - visit).total_seconds() / 86400)
    return max(0, days)


def normalize_clients(df: pd.DataFrame) -> pd.DataFrame:
    df = normalize(df, CLIENT_NUMERIC_COLUMNS, CLIENT_TEXT_COLUMNS)
    if df.empty:
        return df
    missing_span = df["conversionSpan"] <= 0
    if missing_span.any():
        df.loc[missing_span, "conversionSpan"] = [
            conversion_span_days(v, p)
            for v, p in zip(df.loc[missing_span, "firstVisitDate"], df.loc[missing_span, "firstPurchase"])
        ]
    return df


NORMALIZERS = {
    "sessions": normalize_sessions,
    "payroll": normalize_payroll,
    "new_clients": normalize_clients,
}


def load_dataset(data_dir: Path, name: str) -> pd.DataFrame:
    numeric_cols, text_cols = DATASETS[name]
    pkl_path = data_dir / f"{name}.pkl"
    csv_path = data_dir / f"{name}.csv"
    if pkl_path.exists():
        df = pd.read_pickle(pkl_path)
    elif csv_path.exists():
        df = pd.read_csv(csv_path, dtype=str, keep_default_na=False)
    else:
        logger.warning("No %s export found in %s; continuing with an empty table", name, data_dir)
        df = pd.DataFrame(columns=numeric_cols + text_cols)

    df = NORMALIZERS[name](df)
    logger.info("Loaded %d %s rows", len(df), name)
    return df


def load_all(data_dir: Path) -> dict[str, pd.DataFrame]:
    return {name: load_dataset(data_dir, name) for name in DATASETS}


def parse_month_year(value: object) -> str | None:
    """``"Jan 2024"``, ``"January 2024"`` or ``"2024-01"`` to a ``YYYY-MM`` key."""
    text = str(value or "").strip()
    if not text:
        return None
    for fmt in ("%b %Y", "%B %Y", "%Y-%m"):
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return f"{parsed.year}-{parsed.month:02d}"
    return None
