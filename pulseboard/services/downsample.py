"""Stride-based thinning of point series to a caller's point budget."""

import math
from typing import Sequence, TypeVar

from pulseboard.core.exceptions import QueryValidationError

T = TypeVar("T")


def limit(points: Sequence[T], budget: int) -> list[T]:
    """Keep every ``ceil(len / budget)``-th point, starting at index 0.

    Lossy visual sampling; uptime summaries come from the rollups instead.
    """
    if budget < 1:
        raise QueryValidationError("'max_points' must be at least 1", details={"max_points": budget})
    if len(points) <= budget:
        return list(points)
    stride = math.ceil(len(points) / budget)
    return list(points[::stride])
