from __future__ import annotations

import logging
import os

import pandas as pd

from studio_analytics.config.constants import METRIC_LABELS
from studio_analytics.features.aggregate import trend_direction
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
from studio_analytics.models.schema import Context

logger = logging.getLogger(__name__)

NO_DATA = "No data available."
TREND_ARROWS = {"up": "▲", "down": "▼", "flat": "■"}


def _metric_map(df: pd.DataFrame) -> dict[str, float]:
    if df.empty:
        return {}
    return dict(zip(df["metric"], df["value"]))


def _signed(pct: float) -> str:
    return f"{TREND_ARROWS[trend_direction(pct)]} {fmt_signed_pct(pct)}"


def build_report(ctx: Context) -> None:
    r = ctx.results
    settings = ctx.settings
    page_size = settings.page_size

    def money(value: float | int | None) -> str:
        return fmt_currency(value, settings.currency)

    fig_rel = os.path.relpath(settings.fig_dir, settings.report_path.parent).replace(os.sep, "/")

    def figure(title: str, name: str) -> str:
        return f"![{title}]({fig_rel}/{name})"

    session_cards = _metric_map(r.get("session_overview", pd.DataFrame()))
    client_cards = _metric_map(r.get("client_overview", pd.DataFrame()))
    by_format = r.get("sessions_by_format", pd.DataFrame())
    by_location = r.get("sessions_by_location", pd.DataFrame())
    efficiency = r.get("format_efficiency", pd.DataFrame())
    time_slots = r.get("time_slot_efficiency", pd.DataFrame())
    payments = r.get("payment_breakdown", pd.DataFrame())
    sessions_mom = r.get("sessions_month_on_month", pd.DataFrame())
    comparison = r.get("format_comparison", pd.DataFrame())
    top_trainers = r.get("trainer_rankings_top", pd.DataFrame())
    bottom_trainers = r.get("trainer_rankings_bottom", pd.DataFrame())
    all_trainers = r.get("trainer_rankings_all", pd.DataFrame())
    trainer_yoy = r.get("trainer_year_on_year", pd.DataFrame())
    payroll_formats = r.get("payroll_format_comparison", pd.DataFrame())
    payroll_mom = r.get("trainer_month_on_month", pd.DataFrame())
    conversion_by_trainer = r.get("conversion_by_trainer", pd.DataFrame())
    conversion_by_membership = r.get("conversion_by_membership", pd.DataFrame())
    clients_mom = r.get("clients_month_on_month", pd.DataFrame())
    clients_yoy = r.get("clients_year_on_year", pd.DataFrame())

    lines: list[str] = []
    lines.append("# Studio Performance Report")
    lines.append(f"_Generated for {ctx.today:%d %b %Y}_")
    lines.append("")

    # ---- Executive summary
    has_sessions = session_cards.get("totalSessions", 0) > 0
    has_clients = client_cards.get("totalClients", 0) > 0

    lines.append("## Executive Summary")
    if has_sessions:
        lines.append(
            f"The studio ran {fmt_num(session_cards['totalSessions'])} classes at a {fmt_pct(session_cards['fillRate'])} fill rate "
            f"and a {fmt_pct(session_cards['showUpRate'])} show-up rate, generating {money(session_cards['totalRevenue'])}."
        )
        lines.append(
            f"{fmt_num(session_cards['emptySessions'])} classes ran empty, leaving utilization at {fmt_pct(session_cards['utilizationRate'])}."
        )
    if has_clients:
        lines.append(
            f"Of {fmt_num(client_cards['totalClients'])} first-visit clients, {fmt_num(client_cards['newMembers'])} were new members; "
            f"{fmt_pct(client_cards['conversionRate'])} converted and {fmt_pct(client_cards['retentionRate'])} were retained."
        )
    if not has_sessions and not has_clients:
        lines.append(NO_DATA)
    lines.append("")

    lines.append("## Key Metrics")
    kpi_rows = []
    if has_sessions:
        kpi_rows += [
            ["Total sessions", fmt_num(session_cards["totalSessions"])],
            ["Total attendance", fmt_num(session_cards["totalAttendance"])],
            ["Fill rate", fmt_pct(session_cards["fillRate"])],
            ["Show-up rate", fmt_pct(session_cards["showUpRate"])],
            ["Late-cancel rate", fmt_pct(session_cards["lateCancelRate"])],
            ["Class revenue", money(session_cards["totalRevenue"])],
            ["Revenue per session", money(session_cards["avgRevenue"])],
        ]
    if has_clients:
        kpi_rows += [
            ["New-client conversion", fmt_pct(client_cards["conversionRate"])],
            ["New-client retention", fmt_pct(client_cards["retentionRate"])],
            ["Average LTV", money(client_cards["avgLTV"])],
            ["Average days to convert", fmt_days(client_cards["avgConversionDays"])],
        ]
    lines.append(md_table(["Metric", "Value"], kpi_rows) if kpi_rows else NO_DATA)
    lines.append("")

    # ---- Class formats
    lines.append("## Class Formats")
    if by_format.empty:
        lines.append(NO_DATA)
    else:
        best = by_format.sort_values("fillRate", ascending=False, kind="stable").iloc[0]
        lines.append(
            f"{safe_label(best['format'], '')} has the highest fill rate at {fmt_pct(best['fillRate'])} across {fmt_num(best['totalSessions'])} sessions."
        )
        lines.append("")
        rows = [
            [
                safe_label(row["format"], ""),
                fmt_num(row["totalSessions"]),
                fmt_num(row["totalCheckedIn"]),
                fmt_pct(row["fillRate"]),
                fmt_pct(row["showUpRate"]),
                fmt_num(row["emptySessions"]),
                money(row["totalRevenue"]),
            ]
            for _, row in paginate(by_format, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Format", "Sessions", "Attendance", "Fill", "Show-up", "Empty", "Revenue"], rows))
        lines.append(f"_Page 1 of {page_count(by_format, page_size)}_")
        lines.append("")
        lines.append(figure("Fill Rate by Class Format", "fill_rate_by_format.png"))
    lines.append("")

    lines.append("### Format Efficiency")
    if efficiency.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["format"], ""),
                fmt_num(round(row["efficiencyScore"], 1)),
                fmt_pct(row["optimizationRate"]),
                fmt_pct(row["revenueEfficiency"]),
                row["category"],
                row["recommendations"],
            ]
            for _, row in paginate(efficiency, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Format", "Score", "Optimized", "Revenue Sessions", "Category", "Recommendations"], rows))
        lines.append("")
        lines.append(figure("Format Efficiency Score", "format_efficiency.png"))
    lines.append("")

    lines.append("### Cycle vs Barre vs Strength")
    if comparison.empty or comparison["winner"].eq("n/a").all():
        lines.append(NO_DATA)
    else:
        families = [c for c in comparison.columns if c not in ("metric", "winner")]
        rows = [
            [METRIC_LABELS.get(row["metric"], row["metric"])]
            + [fmt_num(round(float(row[f]), 1)) for f in families]
            + [str(row["winner"])]
            for _, row in comparison.iterrows()
        ]
        lines.append(md_table(["Metric"] + families + ["Winner"], rows))
    lines.append("")

    lines.append("### Payment Mix")
    if payments.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["format"], ""),
                fmt_num(row["membership"]),
                fmt_num(row["packages"]),
                fmt_num(row["introOffers"]),
                fmt_num(row["singleClasses"]),
                fmt_pct(row["paidAttendeeRate"]),
                fmt_pct(row["monetizationRate"]),
            ]
            for _, row in paginate(payments, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Format", "Memberships", "Packages", "Intro", "Single", "Paid Share", "Monetization"], rows))
    lines.append("")

    lines.append("### Time Slots")
    if time_slots.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["timeSlot"], ""),
                fmt_num(row["totalSessions"]),
                fmt_pct(row["fillRate"]),
                money(row["avgRevenue"]),
                fmt_num(round(row["efficiencyScore"], 1)),
            ]
            for _, row in paginate(time_slots, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Slot", "Sessions", "Fill", "Revenue/Session", "Efficiency"], rows))
        lines.append(f"_Page 1 of {page_count(time_slots, page_size)}_")
    lines.append("")

    lines.append("### Locations")
    if by_location.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [safe_label(row["location"], ""), fmt_num(row["totalSessions"]), fmt_pct(row["fillRate"]), money(row["totalRevenue"])]
            for _, row in by_location.iterrows()
        ]
        lines.append(md_table(["Location", "Sessions", "Fill", "Revenue"], rows))
    lines.append("")

    # ---- Month on month
    lines.append("## Month on Month")
    if sessions_mom.empty:
        lines.append(NO_DATA)
    else:
        latest = sessions_mom.iloc[0]
        lines.append(
            f"In {latest['month']} attendance moved {_signed(latest['totalCheckedInChangePct'])} and revenue "
            f"{_signed(latest['totalRevenueChangePct'])} against the month before."
        )
        lines.append("")
        rows = [
            [
                row["month"],
                fmt_num(row["totalSessions"]),
                f"{fmt_num(row['totalCheckedIn'])} ({_signed(row['totalCheckedInChangePct'])})",
                fmt_pct(row["fillRate"]),
                f"{money(row['totalRevenue'])} ({_signed(row['totalRevenueChangePct'])})",
            ]
            for _, row in paginate(sessions_mom, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Month", "Sessions", "Attendance", "Fill", "Revenue"], rows))
        lines.append("")
        lines.append(figure("Monthly Attendance", "attendance_month_on_month.png"))
    lines.append("")

    lines.append("---PAGEBREAK---")
    lines.append("")

    # ---- Trainers
    lines.append("## Trainer Performance")
    if all_trainers.empty:
        lines.append(NO_DATA)
        lines.append("")
    else:
        lines.append(
            f"{fmt_num(len(all_trainers))} trainers taught in the payroll period. The tables rank them by revenue."
        )
        lines.append("")
        for title, frame in (("Top Trainers", top_trainers), ("Bottom Trainers", bottom_trainers)):
            lines.append(f"### {title}")
            rows = [
                [
                    safe_label(row["trainerName"], ""),
                    safe_label(row["location"], ""),
                    fmt_num(row["totalSessions"]),
                    fmt_num(round(row["avgClassSize"], 1)),
                    money(row["totalRevenue"]),
                    fmt_pct(row["conversionRate"]),
                    fmt_pct(row["retentionRate"]),
                ]
                for _, row in frame.iterrows()
            ]
            lines.append(md_table(["Trainer", "Location", "Sessions", "Class Avg", "Revenue", "Conversion", "Retention"], rows))
            lines.append("")
        lines.append(figure("Top Trainers by Revenue", "top_trainers_revenue.png"))
        lines.append("")

    lines.append("### Year on Year")
    if trainer_yoy.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["trainerName"], ""),
                fmt_num(row["currentSessions"]),
                fmt_num(row["previousSessions"]),
                money(row["currentRevenue"]),
                money(row["previousRevenue"]),
                _signed(row["revenueGrowth"]),
            ]
            for _, row in paginate(trainer_yoy, 1, page_size).iterrows()
        ]
        year = ctx.today.year
        lines.append(
            md_table(["Trainer", f"{year} Sessions", f"{year - 1} Sessions", f"{year} Revenue", f"{year - 1} Revenue", "Growth"], rows)
        )
        lines.append(f"_Page 1 of {page_count(trainer_yoy, page_size)}_")
    lines.append("")

    lines.append("### Format Mix (Payroll)")
    if payroll_formats.empty or payroll_formats["sessions"].sum() == 0:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                row["format"],
                fmt_num(row["sessions"]),
                fmt_num(row["emptySessions"]),
                fmt_num(round(row["classAverageExclEmpty"], 1)),
                money(row["revenue"]),
                fmt_pct(row["revenueShare"]),
            ]
            for _, row in payroll_formats.iterrows()
        ]
        lines.append(md_table(["Format", "Sessions", "Empty", "Class Avg (excl. empty)", "Revenue", "Share"], rows))
        lines.append("")
        lines.append(figure("Revenue by Format Family", "revenue_by_format_family.png"))
    lines.append("")

    lines.append("### Payroll Month on Month")
    if payroll_mom.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                row["month"],
                fmt_num(row["totalSessions"]),
                fmt_num(row["totalCustomers"]),
                f"{money(row['totalRevenue'])} ({_signed(row['totalRevenueChangePct'])})",
                fmt_num(row["activeTrainers"]),
            ]
            for _, row in paginate(payroll_mom, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Month", "Sessions", "Customers", "Revenue", "Trainers"], rows))
    lines.append("")

    # ---- Clients
    lines.append("## New-Client Conversion")
    if clients_mom.empty or clients_mom["totalMembers"].sum() == 0:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                row["month"],
                fmt_num(row["totalMembers"]),
                fmt_num(row["newMembers"]),
                fmt_num(row["converted"]),
                fmt_pct(row["conversionRate"]),
                fmt_pct(row["retentionRate"]),
                money(row["avgLTV"]),
                fmt_num(round(row["avgConversionInterval"], 1)),
            ]
            for _, row in paginate(clients_mom, 1, page_size).iterrows()
        ]
        lines.append(
            md_table(["Month", "Trials", "New", "Converted", "Conversion", "Retention", "Avg LTV", "Days to Convert"], rows)
        )
        lines.append(f"_Page 1 of {page_count(clients_mom, page_size)}_")
        lines.append("")
        lines.append(figure("New-Client Conversion by Month", "client_conversion_month_on_month.png"))
    lines.append("")

    lines.append("### Conversion by Trainer")
    if conversion_by_trainer.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["trainerName"], ""),
                fmt_num(row["totalMembers"]),
                fmt_num(row["newMembers"]),
                fmt_pct(row["conversionRate"]),
                fmt_pct(row["retentionRate"]),
                money(row["avgLTV"]),
            ]
            for _, row in paginate(conversion_by_trainer, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Trainer", "Clients", "New", "Conversion", "Retention", "Avg LTV"], rows))
    lines.append("")

    lines.append("### Conversion by Membership")
    if conversion_by_membership.empty:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                safe_label(row["membershipUsed"], ""),
                fmt_num(row["totalMembers"]),
                fmt_pct(row["conversionRate"]),
                fmt_pct(row["retentionRate"]),
                money(row["totalLTV"]),
            ]
            for _, row in paginate(conversion_by_membership, 1, page_size).iterrows()
        ]
        lines.append(md_table(["Membership", "Clients", "Conversion", "Retention", "Total LTV"], rows))
    lines.append("")

    lines.append("### Year on Year")
    if clients_yoy.empty or (clients_yoy["currentTotalMembers"].sum() + clients_yoy["previousTotalMembers"].sum()) == 0:
        lines.append(NO_DATA)
    else:
        rows = [
            [
                row["month"],
                fmt_num(row["currentTotalMembers"]),
                fmt_num(row["previousTotalMembers"]),
                _signed(row["totalMembersGrowth"]),
                fmt_pct(row["currentConversionRate"]),
                fmt_pct(row["previousConversionRate"]),
            ]
            for _, row in clients_yoy.iterrows()
        ]
        year = ctx.today.year
        lines.append(
            md_table(["Month", f"{year} Trials", f"{year - 1} Trials", "Growth", f"{year} Conversion", f"{year - 1} Conversion"], rows)
        )
    lines.append("")

    report_path = settings.report_path
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Report written to %s", report_path)
