from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

import pandas as pd

from console_core.models import Period


@dataclass(frozen=True)
class MonthBounds:
    year_from: int
    year_to: int
    month_from: int
    month_to: int

    def as_params(self) -> Dict[str, int]:
        return {
            "yearFrom": self.year_from,
            "yearTo": self.year_to,
            "monthFrom": self.month_from,
            "monthTo": self.month_to,
        }


def pick_latest(periods: Any) -> Optional[Period]:
    """Most recent period by (year, month, week, id); ``None`` when there is nothing to pick."""
    if not isinstance(periods, (list, tuple)):
        return None
    candidates = [p for p in periods if isinstance(p, Period)]
    if not candidates:
        return None
    return max(candidates, key=lambda p: p.sort_key)


def _parse_date(value: Optional[str]) -> Optional[pd.Timestamp]:
    if value is None:
        return None
    parsed = pd.to_datetime(value, errors="coerce")
    if parsed is None or pd.isna(parsed):
        return None
    return parsed


def compute_month_bounds(period: Period) -> MonthBounds:
    start = _parse_date(period.start_date)
    end = _parse_date(period.end_date)
    if start is not None and end is not None:
        return MonthBounds(
            year_from=int(start.year),
            year_to=int(end.year),
            month_from=int(start.month),
            month_to=int(end.month),
        )
    return MonthBounds(
        year_from=period.year,
        year_to=period.year,
        month_from=period.month,
        month_to=period.month,
    )


def period_label(period: Period) -> str:
    if period.name and period.name.strip():
        return period.name
    return f"{period.month}/{period.year}"
