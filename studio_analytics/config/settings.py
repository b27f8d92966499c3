from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
import os


def _load_env(path: Path) -> None:
    if not path.exists():
        return
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip().lstrip("\ufeff")
        value = value.strip().strip("\"").strip("'")
        if key and key not in os.environ:
            os.environ[key] = value


@dataclass(frozen=True)
class Settings:
    base_dir: Path
    data_dir: Path
    output_dir: Path
    table_dir: Path
    fig_dir: Path
    report_path: Path
    pdf_path: Path
    month_seed_start: str
    top_n: int
    page_size: int
    currency: str
    log_level: str

    def with_dirs(self, data_dir: Path | None = None, output_dir: Path | None = None) -> "Settings":
        """Return a copy pointing at other input/output folders (CLI overrides)."""
        settings = self
        if data_dir is not None:
            settings = replace(settings, data_dir=Path(data_dir))
        if output_dir is not None:
            output_dir = Path(output_dir)
            settings = replace(
                settings,
                output_dir=output_dir,
                table_dir=output_dir / "tables",
                fig_dir=output_dir / "figures",
                report_path=output_dir / "report.md",
                pdf_path=output_dir / "Studio Performance Report.pdf",
            )
        return settings


def get_settings() -> Settings:
    base_dir = Path(__file__).resolve().parents[2]
    _load_env(base_dir / ".env")
    output_dir = Path(os.getenv("STUDIO_OUTPUT_DIR", str(base_dir / "output")))

    return Settings(
        base_dir=base_dir,
        data_dir=Path(os.getenv("STUDIO_DATA_DIR", str(base_dir / "db"))),
        output_dir=output_dir,
        table_dir=output_dir / "tables",
        fig_dir=output_dir / "figures",
        report_path=output_dir / "report.md",
        pdf_path=output_dir / "Studio Performance Report.pdf",
        month_seed_start=os.getenv("STUDIO_MONTH_SEED_START", "2024-01"),
        top_n=int(os.getenv("STUDIO_TOP_N", "5")),
        page_size=int(os.getenv("STUDIO_PAGE_SIZE", "10")),
        currency=os.getenv("STUDIO_CURRENCY", "₹"),
        log_level=os.getenv("STUDIO_LOG_LEVEL", "INFO"),
    )
