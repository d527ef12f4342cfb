"""Query window parsing and granularity resolution."""

import math
from dataclasses import dataclass
from datetime import date as date_cls
from datetime import datetime, time, timedelta, timezone
from enum import Enum

from pulseboard.core.clock import as_utc, utcnow
from pulseboard.core.exceptions import QueryValidationError


class Resolution(str, Enum):
    minute = "minute"
    hour = "hour"
    day = "day"

    @property
    def seconds(self) -> int:
        return PERIOD_SECONDS[self]

    @property
    def per_day(self) -> int:
        return 86400 // PERIOD_SECONDS[self]


PERIOD_SECONDS = {
    Resolution.minute: 60,
    Resolution.hour: 3600,
    Resolution.day: 86400,
}

# Maximum window (days) a query may request at each resolution
MAX_WINDOW_DAYS = {
    Resolution.minute: 365,
    Resolution.hour: 30,
    Resolution.day: 365,
}

AUTO = "auto"


@dataclass(frozen=True)
class QueryWindow:
    start: datetime
    end: datetime
    days: float
    is_relative: bool  # True for the "last N days from now" form


def resolve_granularity(requested: str, window_days: float) -> Resolution:
    """Map a granularity token to a concrete resolution, enforcing window ceilings."""
    token = (requested or "").strip().lower()

    if token == AUTO:
        if window_days <= 1:
            resolution = Resolution.minute
        elif window_days <= 30:
            resolution = Resolution.hour
        else:
            resolution = Resolution.day
    else:
        try:
            resolution = Resolution(token)
        except ValueError:
            raise QueryValidationError(
                "Invalid granularity. Use 'minute', 'hour', 'day', or 'auto'",
                details={"granularity": requested},
            ) from None

    ceiling = MAX_WINDOW_DAYS[resolution]
    if window_days > ceiling:
        raise QueryValidationError(
            f"{resolution.value.capitalize()}-level data is only available for up to {ceiling} days",
            details={"granularity": resolution.value, "days": window_days, "max_days": ceiling},
        )
    return resolution


def parse_timestamp(value: str, field: str) -> datetime:
    """Parse YYYY-MM-DD or an ISO-8601 date-time; naive values are UTC."""
    try:
        parsed = datetime.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise QueryValidationError(
            f"Invalid {field} format. Use ISO string (YYYY-MM-DDTHH:mm:ss) or YYYY-MM-DD",
            details={field: value},
        ) from None
    return as_utc(parsed)


def _parse_day(value: str) -> date_cls:
    try:
        return date_cls.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        raise QueryValidationError("Invalid date format. Use YYYY-MM-DD", details={"date": value}) from None


def resolve_window(
    date: str | None = None,
    start: str | None = None,
    end: str | None = None,
    days: float = 1,
    now: datetime | None = None,
) -> QueryWindow:
    """Resolve the requested window.

    Precedence: a single calendar date, then explicit start/end, then a day
    count relative to now.
    """
    now = as_utc(now) if now else utcnow()

    if date:
        day = _parse_day(date)
        window_start = datetime.combine(day, time.min, tzinfo=timezone.utc)
        window_end = datetime.combine(day, time.max, tzinfo=timezone.utc)
        return QueryWindow(window_start, window_end, 1.0, is_relative=False)

    if start or end:
        window_end = parse_timestamp(end, "end date") if end else now
        if start:
            window_start = parse_timestamp(start, "start date")
        else:
            window_start = window_end - timedelta(days=_positive_days(days))
        if window_end < window_start:
            raise QueryValidationError(
                "End date must be after start date",
                details={"start_date": window_start.isoformat(), "end_date": window_end.isoformat()},
            )
        span_days = (window_end - window_start).total_seconds() / 86400
        return QueryWindow(window_start, window_end, span_days, is_relative=False)

    span = _positive_days(days)
    return QueryWindow(now - timedelta(days=span), now, span, is_relative=True)


def _positive_days(days: float) -> float:
    if days is None or not math.isfinite(days) or days <= 0:
        raise QueryValidationError("'days' must be a positive number", details={"days": days})
    return float(days)
