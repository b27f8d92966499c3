from __future__ import annotations

import math
from pathlib import Path
import pandas as pd
import matplotlib.pyplot as plt


def ensure_dirs(table_dir: Path, fig_dir: Path) -> None:
    table_dir.mkdir(parents=True, exist_ok=True)
    fig_dir.mkdir(parents=True, exist_ok=True)


def save_table(df: pd.DataFrame, path: Path) -> None:
    df.to_csv(path, index=False)


def save_fig(fig: plt.Figure, path: Path) -> None:
    fig.tight_layout()
    fig.savefig(path, dpi=150)
    plt.close(fig)


def md_table(headers: list[str], rows: list[list[str]]) -> str:
    lines = ["| " + " | ".join(headers) + " |", "| " + " | ".join(["---"] * len(headers)) + " |"]
    for row in rows:
        lines.append("| " + " | ".join(row) + " |")
    return "\n".join(lines)


def paginate(df: pd.DataFrame, page: int = 1, page_size: int = 10) -> pd.DataFrame:
    """Rows of a 1-based page; pages past the end come back empty."""
    start = max(page - 1, 0) * page_size
    return df.iloc[start:start + page_size]


def page_count(df: pd.DataFrame, page_size: int = 10) -> int:
    return max(1, -(-len(df) // page_size))


def fmt_pct(value: float | int | None) -> str:
    """Rates are stored on a 0-100 scale."""
    if value is None or pd.isna(value):
        return "0.0%"
    return f"{value:.1f}%"


def fmt_signed_pct(value: float | int | None) -> str:
    if value is None or pd.isna(value):
        return "0.0%"
    return f"{value:+.1f}%"


def fmt_num(value: float | int | None) -> str:
    if value is None or pd.isna(value):
        return "0"
    if isinstance(value, float) and value.is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}" if isinstance(value, float) else f"{value:,}"


def fmt_days(value: float | int | None) -> str:
    if value is None or pd.isna(value):
        return "0.0 days"
    return f"{value:.1f} days"


def fmt_currency(value: float | int | None, symbol: str = "₹") -> str:
    # Indian short scale: K (thousand), L (lakh), Cr (crore).
    if value is None or pd.isna(value):
        return f"{symbol}0"
    abs_value = abs(value)
    if abs_value >= 10_000_000:
        return f"{symbol}{value / 10_000_000:.1f}Cr"
    if abs_value >= 100_000:
        return f"{symbol}{value / 100_000:.1f}L"
    if abs_value >= 1000:
        return f"{symbol}{value / 1000:.1f}K"
    return f"{symbol}{math.floor(value + 0.5)}"


def safe_label(primary: object, fallback: object, default: str = "Unknown") -> str:
    def _clean(val: object) -> str | None:
        if not isinstance(val, str):
            return None
        # Sheet exports carry NBSPs and mis-decoded "Â" prefixes.
        val = val.replace("\u00c2", "").replace("\u00a0", " ").strip()
        val = " ".join(val.split())
        if not val or val.lower() in {"nan", "none"}:
            return None
        return val

    primary_clean = _clean(primary)
    if primary_clean:
        return primary_clean
    fallback_clean = _clean(fallback)
    if fallback_clean:
        return fallback_clean
    return default
