from __future__ import annotations

import logging
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from studio_analytics.io.writers import fmt_currency, fmt_pct, save_fig
from studio_analytics.models.schema import Context
from studio_analytics.visuals.style import (
    PALETTE,
    VIBRANT_COLORS,
    add_headroom,
    annotate_bars,
    custom_theme,
    format_color,
    trend_color,
)

logger = logging.getLogger(__name__)


def build_figures(ctx: Context) -> None:
    fig_dir = ctx.settings.fig_dir
    with plt.style.context(custom_theme()):
        _build_figures(ctx, fig_dir)


def _build_figures(ctx: Context, fig_dir: Path) -> None:
    currency = ctx.settings.currency
    top_n = ctx.settings.top_n

    # 1) Fill rate by class format
    df = ctx.results.get("sessions_by_format")
    if df is not None and not df.empty:
        plot_df = df.head(10)
        fig, ax = plt.subplots(figsize=(8, 4))
        bars = ax.bar(
            plot_df["format"].astype(str).str.slice(0, 18),
            plot_df["fillRate"],
            color=[format_color(f) for f in plot_df["format"]],
        )
        annotate_bars(ax, bars, [fmt_pct(v) for v in plot_df["fillRate"]])
        ax.set_title("Fill Rate by Class Format")
        ax.set_ylabel("Fill rate (%)")
        plt.setp(ax.get_xticklabels(), rotation=30, ha="right")
        add_headroom(ax)
        save_fig(fig, fig_dir / "fill_rate_by_format.png")

    # 2) Monthly attendance with the latest change called out
    df = ctx.results.get("sessions_month_on_month")
    if df is not None and not df.empty:
        plot_df = df.iloc[::-1]
        x = np.arange(len(plot_df))
        fig, ax = plt.subplots(figsize=(8, 4))
        ax.plot(x, plot_df["totalCheckedIn"], marker="o", color=PALETTE["primary"], label="Attendance")
        ax2 = ax.twinx()
        ax2.plot(x, plot_df["fillRate"], linestyle="--", color=PALETTE["highlight"], label="Fill rate")
        ax2.set_ylabel("Fill rate (%)")
        ax2.grid(False)
        ax.set_xticks(x)
        ax.set_xticklabels(plot_df["month"])

        latest = df.iloc[0]
        direction = latest["totalCheckedInTrend"]
        ax.annotate(
            f"{latest['totalCheckedInChangePct']:+.1f}% MoM",
            xy=(x[-1], latest["totalCheckedIn"]),
            xytext=(-10, 12),
            textcoords="offset points",
            ha="right",
            fontsize=9,
            color=trend_color(direction),
        )
        ax.set_title("Monthly Attendance")
        ax.set_ylabel("Checked in")
        plt.setp(ax.get_xticklabels(), rotation=30, ha="right")
        add_headroom(ax)
        save_fig(fig, fig_dir / "attendance_month_on_month.png")

    # 3) Efficiency score by format
    df = ctx.results.get("format_efficiency")
    if df is not None and not df.empty:
        plot_df = df.head(10).iloc[::-1]
        fig, ax = plt.subplots(figsize=(8, 4.5))
        ax.barh(
            plot_df["format"].astype(str).str.slice(0, 24),
            plot_df["efficiencyScore"],
            color=[format_color(f) for f in plot_df["format"]],
        )
        ax.axvline(80, color=trend_color("up"), linestyle=":", linewidth=1)
        ax.axvline(60, color=PALETTE["highlight"], linestyle=":", linewidth=1)
        ax.set_title("Format Efficiency Score")
        ax.set_xlabel("Score")
        save_fig(fig, fig_dir / "format_efficiency.png")

    # 4) Top trainers by revenue
    df = ctx.results.get("trainer_rankings_top")
    if df is not None and not df.empty:
        plot_df = df.head(top_n).iloc[::-1]
        fig, ax = plt.subplots(figsize=(8, 4))
        bars = ax.barh(plot_df["trainerName"].astype(str).str.slice(0, 24), plot_df["totalRevenue"], color=PALETTE["secondary"])
        for bar, value in zip(bars, plot_df["totalRevenue"]):
            ax.annotate(
                fmt_currency(value, currency),
                xy=(bar.get_width(), bar.get_y() + bar.get_height() / 2),
                xytext=(4, 0),
                textcoords="offset points",
                va="center",
                fontsize=8,
            )
        ax.set_title(f"Top {top_n} Trainers by Revenue")
        ax.set_xlabel("Revenue")
        ax.set_xlim(0, max(float(plot_df["totalRevenue"].max()), 1.0) * 1.2)
        save_fig(fig, fig_dir / "top_trainers_revenue.png")

    # 5) Revenue share by format family (payroll)
    df = ctx.results.get("payroll_format_comparison")
    if df is not None and not df.empty and df["revenue"].sum() > 0:
        fig, ax = plt.subplots(figsize=(6, 4))
        x = np.arange(len(df))
        bars = ax.bar(x, df["revenue"], color=[format_color(f) for f in df["format"]])
        annotate_bars(ax, bars, [fmt_pct(v) for v in df["revenueShare"]])
        ax.set_xticks(x)
        ax.set_xticklabels(df["format"])
        ax.set_title("Revenue by Format Family")
        ax.set_ylabel("Revenue")
        add_headroom(ax)
        save_fig(fig, fig_dir / "revenue_by_format_family.png")

    # 6) New-client conversion by month
    df = ctx.results.get("clients_month_on_month")
    if df is not None and not df.empty and df["totalMembers"].sum() > 0:
        plot_df = df.iloc[::-1]
        fig, ax = plt.subplots(figsize=(9, 4))
        x = np.arange(len(plot_df))
        ax.bar(x, plot_df["totalMembers"], color=PALETTE["primary"], alpha=0.35, label="Trials")
        ax.bar(x, plot_df["newMembers"], color=PALETTE["primary"], width=0.5, label="New members")
        ax2 = ax.twinx()
        ax2.plot(x, plot_df["conversionRate"], marker="o", color=VIBRANT_COLORS[0], label="Conversion %")
        ax2.plot(x, plot_df["retentionRate"], marker="s", color=VIBRANT_COLORS[2], label="Retention %")
        ax2.set_ylabel("Rate (%)")
        ax2.grid(False)
        ax.set_xticks(x)
        ax.set_xticklabels(plot_df["month"], rotation=45, ha="right", fontsize=8)
        ax.set_title("New-Client Conversion by Month")
        ax.set_ylabel("Clients")
        handles = ax.get_legend_handles_labels()[0] + ax2.get_legend_handles_labels()[0]
        labels = ax.get_legend_handles_labels()[1] + ax2.get_legend_handles_labels()[1]
        ax.legend(handles, labels, fontsize=8, loc="upper left")
        save_fig(fig, fig_dir / "client_conversion_month_on_month.png")

    logger.info("Figures written to %s", fig_dir)
