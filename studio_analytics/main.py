from __future__ import annotations

import argparse
import logging
from datetime import date

from studio_analytics.config.settings import get_settings
from studio_analytics.io.loaders import load_all
from studio_analytics.models.schema import Context, NewClientFilterOptions, SessionFilterOptions
from studio_analytics.pipelines.build_figures import build_figures
from studio_analytics.pipelines.build_report import build_report
from studio_analytics.pipelines.build_tables import build_tables
from studio_analytics.pipelines.export_pdf import export_pdf

logger = logging.getLogger("studio_analytics")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="studio-analytics",
        description="Build attendance, trainer and new-client tables, figures and a report from studio exports.",
    )
    parser.add_argument("--data-dir", help="Folder holding sessions/payroll/new_clients exports (.pkl or .csv)")
    parser.add_argument("--output-dir", help="Where tables/, figures/, report.md and the PDF are written")
    parser.add_argument("--no-pdf", action="store_true", help="Skip the PDF export")
    parser.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Reference date (YYYY-MM-DD) for month windows and year-on-year tables",
    )
    filters = parser.add_argument_group("filters", "Narrow every table to a slice of the data; repeat a flag to select several values")
    filters.add_argument("--from", dest="date_from", type=date.fromisoformat, help="First day to include (YYYY-MM-DD)")
    filters.add_argument("--to", dest="date_to", type=date.fromisoformat, help="Last day to include (YYYY-MM-DD)")
    filters.add_argument("--location", action="append", default=[], help="Studio location")
    filters.add_argument("--trainer", action="append", default=[], help="Trainer name")
    filters.add_argument("--format", dest="class_format", action="append", default=[], help="Class format (sessions only)")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = _parse_args(argv)
    settings = get_settings().with_dirs(data_dir=args.data_dir, output_dir=args.output_dir)
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    data = load_all(settings.data_dir)
    ctx = Context(
        settings=settings,
        data=data,
        today=args.today or date.today(),
        session_filters=SessionFilterOptions(
            date_start=args.date_from,
            date_end=args.date_to,
            location=args.location,
            trainer=args.trainer,
            class_format=args.class_format,
        ),
        client_filters=NewClientFilterOptions(
            date_start=args.date_from,
            date_end=args.date_to,
            location=args.location,
            trainer=args.trainer,
        ),
    )

    build_tables(ctx)
    build_figures(ctx)
    build_report(ctx)
    if not args.no_pdf:
        export_pdf(report_md_path=settings.report_path, pdf_path=settings.pdf_path)

    logger.info("Studio analytics run completed.")


if __name__ == "__main__":
    main()
