from __future__ import annotations

import logging

import pandas as pd

from studio_analytics.features.clients import (
    DIMENSIONS as CLIENT_DIMENSIONS,
    client_overview,
    client_top_bottom,
    clients_month_on_month,
    clients_year_on_year,
    conversion_breakdown,
    filter_new_clients,
)
from studio_analytics.features.payroll import (
    filter_payroll,
    payroll_format_comparison,
    process_trainer_data,
    trainer_month_on_month,
    trainer_rankings,
    trainer_year_on_year,
)
from studio_analytics.features.sessions import (
    DIMENSIONS as SESSION_DIMENSIONS,
    filter_sessions,
    format_comparison,
    format_efficiency,
    payment_breakdown,
    session_overview,
    sessions_month_on_month,
    summarize_by,
    time_slot_efficiency,
)
from studio_analytics.io.writers import ensure_dirs, save_table
from studio_analytics.models.schema import Context

logger = logging.getLogger(__name__)


def _publish(ctx: Context, name: str, df: pd.DataFrame) -> None:
    save_table(df, ctx.settings.table_dir / f"{name}.csv")
    ctx.add_result(name, df)
    logger.debug("Wrote table %s (%d rows)", name, len(df))


def build_tables(ctx: Context) -> None:
    settings = ctx.settings
    data = ctx.data
    top_n = settings.top_n

    ensure_dirs(settings.table_dir, settings.fig_dir)

    sessions = filter_sessions(data["sessions"], ctx.session_filters)
    payroll = filter_payroll(data["payroll"], ctx.session_filters)
    clients = filter_new_clients(data["new_clients"], ctx.client_filters)
    logger.info(
        "Filtered rows kept: sessions %d/%d, payroll %d/%d, new clients %d/%d",
        len(sessions),
        len(data["sessions"]),
        len(payroll),
        len(data["payroll"]),
        len(clients),
        len(data["new_clients"]),
    )

    # Class attendance
    _publish(ctx, "session_overview", session_overview(sessions))
    for dimension in SESSION_DIMENSIONS:
        _publish(ctx, f"sessions_by_{dimension}", summarize_by(sessions, dimension))
    _publish(ctx, "format_efficiency", format_efficiency(sessions))
    _publish(ctx, "time_slot_efficiency", time_slot_efficiency(sessions))
    _publish(ctx, "payment_breakdown", payment_breakdown(sessions))
    _publish(ctx, "sessions_month_on_month", sessions_month_on_month(sessions))
    _publish(ctx, "format_comparison", format_comparison(sessions))

    # Trainer performance
    processed = process_trainer_data(payroll)
    _publish(ctx, "trainer_data", processed)
    _publish(ctx, "trainer_rankings_top", trainer_rankings(processed, "revenue", "top", top_n))
    _publish(ctx, "trainer_rankings_bottom", trainer_rankings(processed, "revenue", "bottom", top_n))
    _publish(ctx, "trainer_rankings_all", trainer_rankings(processed, "revenue", "all", top_n))
    _publish(ctx, "trainer_year_on_year", trainer_year_on_year(processed, ctx.today.year))
    _publish(ctx, "payroll_format_comparison", payroll_format_comparison(processed))
    _publish(ctx, "trainer_month_on_month", trainer_month_on_month(processed))

    # New-client conversion
    _publish(ctx, "client_overview", client_overview(clients))
    for dimension in CLIENT_DIMENSIONS:
        _publish(ctx, f"conversion_by_{dimension}", conversion_breakdown(clients, dimension, with_totals=True))
    _publish(ctx, "trainer_conversion_top", client_top_bottom(clients, "trainer", "conversionRate", "top", top_n))
    _publish(ctx, "trainer_conversion_bottom", client_top_bottom(clients, "trainer", "conversionRate", "bottom", top_n))
    _publish(ctx, "clients_month_on_month", clients_month_on_month(clients, ctx.today, settings.month_seed_start))
    _publish(ctx, "clients_year_on_year", clients_year_on_year(clients, ctx.today.year))

    logger.info("Built %d tables in %s", len(ctx.results), settings.table_dir)
