from __future__ import annotations

import matplotlib.pyplot as plt
from cycler import cycler

PALETTE = {
    "primary": "#1E3A8A",
    "secondary": "#0F766E",
    "accent": "#7C3AED",
    "danger": "#DC2626",
    "neutral": "#334155",
    "highlight": "#F59E0B",
}

FORMAT_COLORS = {
    "Cycle": "#2563EB",
    "Barre": "#DB2777",
    "Strength": "#059669",
}

TREND_COLORS = {
    "up": "#16A34A",
    "down": "#DC2626",
    "flat": "#6B7280",
}

VIBRANT_COLORS = [
    "#E15759",
    "#F28E2B",
    "#59A14F",
    "#4E79A7",
    "#B07AA1",
    "#EDC948",
]


def custom_theme() -> dict:
    return {
        # --- Axis & Spines ---
        "axes.facecolor": "white",
        "axes.edgecolor": PALETTE["neutral"],
        "axes.linewidth": 1.0,
        "axes.grid": True,
        "grid.color": "#E2E8F0",
        "grid.linewidth": 0.6,
        "axes.axisbelow": True,
        "axes.spines.top": False,
        "axes.spines.right": False,

        # --- Titles ---
        "axes.titlesize": 15,
        "axes.titleweight": "bold",
        "axes.titlecolor": PALETTE["neutral"],
        "axes.titlelocation": "left",

        # --- Axis labels ---
        "axes.labelsize": 12,
        "axes.labelweight": "bold",
        "axes.labelcolor": PALETTE["neutral"],

        # --- Ticks ---
        "xtick.labelsize": 9,
        "ytick.labelsize": 9,
        "xtick.color": PALETTE["neutral"],
        "ytick.color": PALETTE["neutral"],
        "xtick.major.pad": 6,
        "ytick.major.pad": 4,

        # --- Colors & Fonts ---
        "axes.prop_cycle": cycler(
            color=[
                PALETTE["primary"],
                PALETTE["secondary"],
                PALETTE["accent"],
                PALETTE["highlight"],
                VIBRANT_COLORS[0],
                VIBRANT_COLORS[3],
            ]
        ),
        "text.color": PALETTE["neutral"],
        "font.size": 11,
        # DejaVu Sans ships with matplotlib and renders the rupee sign.
        "font.family": "DejaVu Sans",
    }


def trend_color(direction: str) -> str:
    """Green for ``up``, red for ``down``, gray otherwise."""
    return TREND_COLORS.get(direction, TREND_COLORS["flat"])


def format_color(name: str) -> str:
    for family, color in FORMAT_COLORS.items():
        if family.lower() in str(name).lower():
            return color
    return PALETTE["neutral"]


def annotate_bars(ax, bars, labels: list[str], color: str = "#334155") -> None:
    for bar, label in zip(bars, labels):
        ax.annotate(
            label,
            xy=(bar.get_x() + bar.get_width() / 2, bar.get_height()),
            xytext=(0, 3),
            textcoords="offset points",
            ha="center",
            va="bottom",
            fontsize=8,
            color=color,
        )


def add_headroom(ax, factor: float = 1.15) -> None:
    ymin, ymax = ax.get_ylim()
    if ymax <= 0:
        return
    ax.set_ylim(ymin, ymax * factor)
