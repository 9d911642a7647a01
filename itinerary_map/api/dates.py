# itinerary_map/api/dates.py
"""Day label parsing and compact planned-date formatting."""
from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

logger = logging.getLogger(__name__)

MONTHS = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
_MONTH_INDEX = {name.lower(): idx + 1 for idx, name in enumerate(MONTHS)}

_DAY_MONTH_YEAR = re.compile(r"^(\d{1,2})\s+([A-Za-z]{3})\s+(\d{4})$")
_ISO_DATE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")

RANGE_DASH = "–"
RUN_SEPARATOR = " / "


def _at_noon(year: int, month: int, day: int) -> Optional[datetime]:
    # Noon keeps day deltas whole across daylight-saving changes.
    try:
        return datetime(year, month, day, 12, 0, 0)
    except ValueError:
        logger.debug("Rejected impossible date %04d-%02d-%02d", year, month, day)
        return None


def parse_day_date(value) -> Optional[datetime]:
    """Parse "25 Apr 2026" or "2026-04-25" into a local noon datetime.

    Anything else returns None so callers can fall back to id ordering.
    """
    if value is None:
        return None
    raw = str(value).strip()

    match = _DAY_MONTH_YEAR.match(raw)
    if match:
        month = _MONTH_INDEX.get(match.group(2).lower())
        if month is None:
            return None
        return _at_noon(int(match.group(3)), month, int(match.group(1)))

    match = _ISO_DATE.match(raw)
    if match:
        return _at_noon(int(match.group(1)), int(match.group(2)), int(match.group(3)))

    return None


def format_date_range_short(start: datetime, end: datetime) -> str:
    """Render one run of consecutive days."""
    start_month = MONTHS[start.month - 1]
    end_month = MONTHS[end.month - 1]
    if start.date() == end.date():
        return f"{start.day} {start_month}"
    if (start.year, start.month) == (end.year, end.month):
        return f"{start.day}{RANGE_DASH}{end.day} {start_month}"
    return f"{start.day} {start_month}{RANGE_DASH}{end.day} {end_month}"


def group_consecutive(dates: List[datetime]) -> List[Tuple[datetime, datetime]]:
    """Split sorted dates into (start, end) runs with a one-day step."""
    if not dates:
        return []

    runs = []
    run_start = prev = dates[0]
    for current in dates[1:]:
        if (current.date() - prev.date()).days == 1:
            prev = current
            continue
        runs.append((run_start, prev))
        run_start = prev = current
    runs.append((run_start, prev))
    return runs


def format_planned_dates_short(date_labels: Iterable[str]) -> str:
    """Format day labels as e.g. "25–26 Apr / 28 Apr".

    Labels that fail to parse are dropped.
    """
    parsed = [parse_day_date(label) for label in (date_labels or [])]
    dates = sorted({d for d in parsed if d is not None})
    return RUN_SEPARATOR.join(format_date_range_short(s, e) for s, e in group_consecutive(dates))


__all__ = [
    "parse_day_date",
    "format_date_range_short",
    "format_planned_dates_short",
]
