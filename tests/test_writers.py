from __future__ import annotations

import pandas as pd
import pytest

from studio_analytics.io.writers import (
    fmt_currency,
    fmt_days,
    fmt_num,
    fmt_pct,
    fmt_signed_pct,
    md_table,
    page_count,
    paginate,
    safe_label,
)
from studio_analytics.visuals.style import format_color, trend_color, TREND_COLORS


@pytest.mark.parametrize(
    "value, expected",
    [
        (0, "₹0"),
        (999.4, "₹999"),
        (999.5, "₹1000"),
        (1500, "₹1.5K"),
        (250000, "₹2.5L"),
        (32_000_000, "₹3.2Cr"),
        (None, "₹0"),
    ],
)
def test_fmt_currency(value, expected):
    assert fmt_currency(value) == expected


def test_fmt_currency_custom_symbol():
    assert fmt_currency(1500, "$") == "$1.5K"


def test_percent_and_number_formats():
    assert fmt_pct(62.345) == "62.3%"
    assert fmt_pct(float("nan")) == "0.0%"
    assert fmt_signed_pct(12.0) == "+12.0%"
    assert fmt_signed_pct(-3.26) == "-3.3%"
    assert fmt_num(12500.0) == "12,500"
    assert fmt_num(3) == "3"
    assert fmt_days(4.26) == "4.3 days"
    assert fmt_days(None) == "0.0 days"


def test_paginate():
    df = pd.DataFrame({"n": range(23)})
    assert paginate(df, 1, 10)["n"].tolist() == list(range(10))
    assert paginate(df, 3, 10)["n"].tolist() == [20, 21, 22]
    assert paginate(df, 4, 10).empty
    assert page_count(df, 10) == 3
    assert page_count(df.iloc[0:0], 10) == 1


def test_md_table():
    assert md_table(["A", "B"], [["1", "2"]]) == "| A | B |\n| --- | --- |\n| 1 | 2 |"


def test_safe_label_cleans_sheet_artifacts():
    assert safe_label("\u00c2\u00a0Studio  Barre ", None) == "Studio Barre"
    assert safe_label("nan", "Fallback") == "Fallback"
    assert safe_label(None, None) == "Unknown"


def test_trend_and_format_colors():
    assert trend_color("up") == TREND_COLORS["up"]
    assert trend_color("down") == TREND_COLORS["down"]
    assert trend_color("flat") == TREND_COLORS["flat"]
    assert trend_color("sideways") == TREND_COLORS["flat"]
    assert format_color("Studio PowerCycle") != format_color("Studio Barre 57")
