"""Time-series query planning across live rollups and stored heartbeats.

A query resolves once to a window and a resolution. Per target, recent
relative windows are read from the in-memory rollups; explicit date ranges
and windows reaching past the rollup retention or the warm-up horizon are
folded from stored heartbeats. Both paths produce buckets, which become data points.
"""

import asyncio
import math
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError

from pulseboard.config import settings
from pulseboard.core.clock import as_utc, from_epoch, utcnow
from pulseboard.core.database import Target
from pulseboard.core.exceptions import PulseError, QueryValidationError, StoreUnavailableError
from pulseboard.schemas.status import (
    DataPoint,
    OutputShape,
    QueryConfig,
    SeriesSummary,
    StatusQuery,
    StatusResponse,
    TargetResult,
)
from pulseboard.services.aggregator import (
    NAMED_WINDOWS,
    RETENTION,
    AggregatorRegistry,
    Bucket,
    WindowSummary,
    display_resolution,
    merge_into_slots,
    period_key,
    summarize,
)
from pulseboard.services.downsample import limit
from pulseboard.services.granularity import QueryWindow, Resolution, resolve_granularity, resolve_window
from pulseboard.services.history import HeartbeatStore, fold_events
from pulseboard.services.targets import TargetService

logger = structlog.get_logger()

# Relative windows of exactly these lengths use the precomputed named summaries
NAMED_WINDOW_DAYS = {1.0: "24h", 7.0: "7d", 30.0: "30d"}


@dataclass(frozen=True)
class ResolvedQuery:
    window: QueryWindow
    resolution: Resolution
    max_points: int
    shape: OutputShape


def _iso(dt: datetime) -> str:
    return as_utc(dt).isoformat()


def _round_ping(ping: float | None) -> float | None:
    return round(ping, 2) if ping is not None else None


def bucket_to_point(bucket: Bucket) -> DataPoint:
    return DataPoint(
        timestamp=int(bucket.period_start.timestamp()),
        time=_iso(bucket.period_start),
        status=bucket.representative_status,
        uptime=bucket.uptime_ratio,
        downtime=bucket.downtime_ratio,
        avg_ping=_round_ping(bucket.avg_ping),
        heartbeat_count=bucket.total,
    )


def slot_to_point(slot: Bucket) -> DataPoint:
    """Display slots are stamped with the end of the slot."""
    return DataPoint(
        timestamp=int(slot.period_end.timestamp()),
        time=_iso(slot.period_end),
        status=slot.representative_status,
        uptime=slot.uptime_ratio,
        downtime=slot.downtime_ratio,
        avg_ping=_round_ping(slot.avg_ping),
        heartbeat_count=slot.total,
    )


class QueryPlanner:
    def __init__(
        self,
        registry: AggregatorRegistry,
        store: HeartbeatStore | None = None,
        targets: TargetService | None = None,
        large_request_factor: int | None = None,
    ):
        self._registry = registry
        self._store = store or HeartbeatStore()
        self._targets = targets or TargetService()
        self._large_request_factor = (
            settings.pulse_large_request_factor if large_request_factor is None else large_request_factor
        )

    def resolve(self, query: StatusQuery, now: datetime | None = None) -> ResolvedQuery:
        """Validate a query once, before any per-target work."""
        window = resolve_window(
            date=query.date,
            start=query.start_date,
            end=query.end_date,
            days=query.days,
            now=now,
        )
        resolution = resolve_granularity(query.granularity, window.days)
        return ResolvedQuery(window, resolution, query.max_points, query.format)

    def uses_rollups(self, window: QueryWindow, resolution: Resolution) -> bool:
        """Relative windows read the rollups when they fit both retention and the warm-up horizon."""
        if not window.is_relative:
            return False
        count = math.ceil(window.days * resolution.per_day)
        return count <= RETENTION[resolution] and self._registry.covers(resolution, count)

    async def plan(self, target: Target, resolved: ResolvedQuery) -> TargetResult:
        if resolved.shape == OutputShape.heartbeat:
            buckets = await self._display_buckets(target.id, resolved)
            points = [slot_to_point(slot) for slot in buckets]
        else:
            buckets = await self._series_buckets(target.id, resolved)
            points = limit([bucket_to_point(b) for b in buckets], resolved.max_points)

        summary = await self._summary(target.id, resolved.window, buckets)

        return TargetResult(
            id=target.id,
            name=target.name,
            type=target.type,
            url=target.url,
            actual_granularity=resolved.resolution.value,
            data_points=points,
            summary=SeriesSummary(
                uptime=summary.uptime_ratio,
                avg_ping=_round_ping(summary.avg_ping),
                total_data_points=len(points),
            ),
        )

    async def _series_buckets(self, target_id: int, resolved: ResolvedQuery) -> list[Bucket]:
        window, resolution = resolved.window, resolved.resolution

        if self.uses_rollups(window, resolution):
            aggregator = await self._registry.get(target_id)
            return aggregator.read_custom(window.days, resolution, window.end)

        periods = math.ceil(window.days * resolution.per_day)
        if periods > resolved.max_points * self._large_request_factor:
            logger.warning(
                "large_historical_request",
                target_id=target_id,
                resolution=resolution.value,
                periods=periods,
                max_points=resolved.max_points,
            )
        events = await self._store.query_events(target_id, window.start, window.end)
        return fold_events(events, resolution)

    async def _display_buckets(self, target_id: int, resolved: ResolvedQuery) -> list[Bucket]:
        window = resolved.window
        source_resolution = display_resolution(window.days)

        if self.uses_rollups(window, source_resolution):
            aggregator = await self._registry.get(target_id)
            return aggregator.display_buckets(window, resolved.max_points)

        events = await self._store.query_events(target_id, window.start, window.end)
        folded = fold_events(events, source_resolution)
        return merge_into_slots(folded, window.start, window.end, resolved.max_points)

    async def _summary(self, target_id: int, window: QueryWindow, buckets: list[Bucket]) -> WindowSummary:
        name = NAMED_WINDOW_DAYS.get(window.days) if window.is_relative else None
        if name is not None:
            return await self.window_summary(target_id, name, window.end)
        return summarize(buckets)

    async def window_summary(self, target_id: int, name: str, now: datetime | None = None) -> WindowSummary:
        """Summary of a named window (24h, 7d, 30d) ending at ``now``.

        Served from the rollups when the warm-up horizon covers it, otherwise
        folded from stored heartbeats over the same periods.
        """
        if name not in NAMED_WINDOWS:
            raise QueryValidationError(
                f"Unknown summary window '{name}'. Use one of: {', '.join(NAMED_WINDOWS)}"
            )
        now = as_utc(now) if now else utcnow()
        resolution, count = NAMED_WINDOWS[name]

        if self._registry.covers(resolution, count):
            aggregator = await self._registry.get(target_id)
            return aggregator.read_named_window(name, now)

        start = from_epoch(period_key(now, resolution) - (count - 1) * resolution.seconds)
        events = await self._store.query_events(target_id, start, now)
        return summarize(fold_events(events, resolution))

    async def query_targets(
        self,
        target_ids: list[int] | None,
        query: StatusQuery,
        now: datetime | None = None,
    ) -> StatusResponse:
        """Run one query over several targets; a failing target never fails the batch."""
        now = as_utc(now) if now else utcnow()
        resolved = self.resolve(query, now)

        if target_ids is None:
            try:
                target_ids = await self._targets.active_target_ids()
            except SQLAlchemyError as exc:
                raise StoreUnavailableError("Failed to list active targets.") from exc

        results = await asyncio.gather(*(self._query_one(tid, resolved) for tid in target_ids))

        return StatusResponse(
            targets=list(results),
            config=QueryConfig(
                preset=query.preset,
                granularity=query.granularity,
                days=resolved.window.days,
                max_points=resolved.max_points,
                format=resolved.shape.value,
                start_date=_iso(resolved.window.start),
                end_date=_iso(resolved.window.end),
                timestamp=_iso(now),
            ),
        )

    async def _query_one(self, target_id: int, resolved: ResolvedQuery) -> TargetResult:
        try:
            target = await self._targets.get_target(target_id)
            return await self.plan(target, resolved)
        except PulseError as exc:
            logger.error("target_query_failed", target_id=target_id, error=exc.message)
            return TargetResult(id=target_id, error=exc.message)
        except SQLAlchemyError as exc:
            logger.error("target_query_failed", target_id=target_id, error=str(exc))
            return TargetResult(id=target_id, error=StoreUnavailableError().message)
