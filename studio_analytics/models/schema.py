from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import pandas as pd
from typing import Dict, List, Optional

from studio_analytics.config.settings import Settings


@dataclass
class NewClientFilterOptions:
    """Filters for the client conversion section.

    Empty lists and ``None`` bounds are inactive. Dates are ISO strings or
    ``date`` objects; bounds are inclusive.
    """

    date_start: Optional[str | date] = None
    date_end: Optional[str | date] = None
    location: List[str] = field(default_factory=list)
    home_location: List[str] = field(default_factory=list)
    trainer: List[str] = field(default_factory=list)
    payment_method: List[str] = field(default_factory=list)
    retention_status: List[str] = field(default_factory=list)
    conversion_status: List[str] = field(default_factory=list)
    is_new: List[str] = field(default_factory=list)
    min_ltv: Optional[float] = None
    max_ltv: Optional[float] = None


@dataclass
class SessionFilterOptions:
    date_start: Optional[str | date] = None
    date_end: Optional[str | date] = None
    location: List[str] = field(default_factory=list)
    trainer: List[str] = field(default_factory=list)
    class_format: List[str] = field(default_factory=list)


@dataclass
class Context:
    settings: Settings
    data: Dict[str, pd.DataFrame]
    today: date = field(default_factory=date.today)
    results: Dict[str, pd.DataFrame] = field(default_factory=dict)
    # Applied to sessions and payroll, and to new clients, before any table is built.
    session_filters: SessionFilterOptions = field(default_factory=SessionFilterOptions)
    client_filters: NewClientFilterOptions = field(default_factory=NewClientFilterOptions)

    def add_result(self, name: str, df: pd.DataFrame) -> None:
        self.results[name] = df

    def get(self, name: str) -> pd.DataFrame:
        return self.results[name]
