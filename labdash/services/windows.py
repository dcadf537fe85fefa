"""
Aggregation windows: parsing and validation of report date ranges.

Every report is scoped by an AggregationWindow. Query strings carry dates as
'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM:SS'; both bounds are inclusive. A date-only
upper bound covers the whole day, so the window is stored internally as the
half-open interval [start, end) that the SQL layer binds directly:

    from=2024-01-01, to=2024-01-31
        -> start 2024-01-01 00:00:00, end 2024-02-01 00:00:00

    from=2024-01-01 08:00:00, to=2024-01-31 17:30:00
        -> start 2024-01-01 08:00:00, end 2024-01-31 17:30:01
"""

import math
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional, Tuple

from labdash.core.errors import InvalidWindow


DATE_FORMAT = "%Y-%m-%d"

DATETIME_FORMATS: Tuple[str, ...] = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M",
)


@dataclass(frozen=True)
class AggregationWindow:
    """
    A validated report window plus its optional filters.

    Attributes:
        start: Inclusive lower bound.
        end: Exclusive upper bound.
        raw_from: Lower bound as received, echoed back in responses.
        raw_to: Upper bound as received, echoed back in responses.
        province: Optional province filter ("all" or None means no filter).
        facility: Optional facility name filter.
    """
    start: datetime
    end: datetime
    raw_from: str
    raw_to: str
    province: Optional[str] = None
    facility: Optional[str] = None

    @property
    def span_days(self) -> int:
        """Whole days between the calendar dates of the two bounds."""
        last_day = (self.end - timedelta(microseconds=1)).date()
        return abs((last_day - self.start.date()).days)

    @property
    def span_months(self) -> int:
        """Approximate window length in months (30-day months, rounded)."""
        return int(math.floor(self.span_days / 30 + 0.5))

    def with_filters(
        self,
        province: Optional[str] = None,
        facility: Optional[str] = None,
    ) -> "AggregationWindow":
        return replace(self, province=province, facility=facility)

    def date_range(self) -> Dict[str, str]:
        return {"from": self.raw_from, "to": self.raw_to}


def _parse_bound(value: Any, name: str) -> Tuple[datetime, bool]:
    """
    Parse one bound. Returns (timestamp, has_time).

    Raises:
        InvalidWindow: If the value is missing or matches no accepted format.
    """
    if value is None or not str(value).strip():
        raise InvalidWindow(f"Missing required parameter: '{name}'")

    text = str(value).strip()

    try:
        return datetime.strptime(text, DATE_FORMAT), False
    except ValueError:
        pass

    for fmt in DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt), True
        except ValueError:
            continue

    raise InvalidWindow(
        f"Invalid date for '{name}': '{text}'. "
        "Expected YYYY-MM-DD or YYYY-MM-DD HH:mm:ss"
    )


def parse_window(
    date_from: Optional[str],
    date_to: Optional[str],
    *,
    province: Optional[str] = None,
    facility: Optional[str] = None,
    from_name: str = "from",
    to_name: str = "to",
) -> AggregationWindow:
    """
    Build an AggregationWindow from raw query-string values.

    Args:
        date_from: Inclusive start, 'YYYY-MM-DD' or 'YYYY-MM-DD HH:MM:SS'.
        date_to: Inclusive end, same formats; date-only covers the full day.
        province: Optional province filter, passed through trimmed.
        facility: Optional facility filter, passed through trimmed.
        from_name: Parameter name used in error messages.
        to_name: Parameter name used in error messages.

    Raises:
        InvalidWindow: Missing bound, unparseable bound, or start after end.
    """
    start, _ = _parse_bound(date_from, from_name)
    upper, has_time = _parse_bound(date_to, to_name)

    end = upper + (timedelta(seconds=1) if has_time else timedelta(days=1))

    if start >= end:
        raise InvalidWindow(
            f"'{from_name}' ({str(date_from).strip()}) must not be after "
            f"'{to_name}' ({str(date_to).strip()})"
        )

    return AggregationWindow(
        start=start,
        end=end,
        raw_from=str(date_from).strip(),
        raw_to=str(date_to).strip(),
        province=province.strip() if province and province.strip() else None,
        facility=facility.strip() if facility and facility.strip() else None,
    )


def current_month_window(today: Optional[date] = None) -> AggregationWindow:
    """Window covering the calendar month containing `today`."""
    today = today or date.today()
    first = date(today.year, today.month, 1)
    if today.month == 12:
        next_first = date(today.year + 1, 1, 1)
    else:
        next_first = date(today.year, today.month + 1, 1)
    last = next_first - timedelta(days=1)
    return parse_window(first.strftime(DATE_FORMAT), last.strftime(DATE_FORMAT))
