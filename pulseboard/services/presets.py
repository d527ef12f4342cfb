"""Named dashboard presets resolved to (granularity, days, point budget)."""

import math
from dataclasses import dataclass

from pulseboard.core.exceptions import QueryValidationError
from pulseboard.services.granularity import Resolution

MINUTES_PER_YEAR = 365 * 24 * 60


@dataclass(frozen=True)
class PresetPlan:
    granularity: Resolution
    days: float
    max_points: int


# preset -> (granularity, default days, point budget cap)
PRESETS = {
    "minutely": (Resolution.minute, 1.0, 1440),
    "hourly": (Resolution.hour, 7.0, 720),
    "daily": (Resolution.day, 30.0, 365),
}

CUSTOM_DEFAULT_DAYS = 7.0


def resolve_preset(preset: str, days: float | None = None, interval: int | None = None) -> PresetPlan:
    name = (preset or "").strip().lower()

    if days is not None and days <= 0:
        raise QueryValidationError("'days' must be a positive number", details={"days": days})

    if name in PRESETS:
        granularity, default_days, cap = PRESETS[name]
        requested_days = days if days is not None else default_days
        points = requested_days * granularity.per_day
        return PresetPlan(granularity, requested_days, _budget(min(points, cap)))

    if name == "yearly":
        # Every minute of the window; callers own the cost of this export
        requested_days = days if days is not None else 365.0
        return PresetPlan(Resolution.minute, requested_days, MINUTES_PER_YEAR)

    if name == "custom":
        if interval is None:
            raise QueryValidationError(
                "Custom preset requires 'interval' parameter (minutes between data points)"
            )
        if interval <= 0:
            raise QueryValidationError("'interval' must be a positive number of minutes", details={"interval": interval})
        requested_days = days if days is not None else CUSTOM_DEFAULT_DAYS
        if interval < 60:
            granularity = Resolution.minute
        elif interval < 1440:
            granularity = Resolution.hour
        else:
            granularity = Resolution.day
        _, _, cap = next(p for p in PRESETS.values() if p[0] == granularity)
        points = requested_days * 1440 / interval
        return PresetPlan(granularity, requested_days, _budget(min(points, cap)))

    raise QueryValidationError(
        "Invalid preset. Use 'minutely', 'hourly', 'daily', 'yearly', or 'custom'",
        details={"preset": preset},
    )


def _budget(points: float) -> int:
    return max(1, math.ceil(points))
