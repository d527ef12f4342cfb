"""Per-target minute/hour/day rollups of heartbeat statuses and pings.

Each target gets a ``TargetAggregator`` holding a bounded number of recent
buckets per resolution. Buckets are keyed by the epoch second their period
starts at; a bucket only ever accumulates while its period is open.
"""

import asyncio
import math
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

import structlog

from pulseboard.config import settings
from pulseboard.core.clock import as_utc, from_epoch, utcnow
from pulseboard.core.exceptions import QueryValidationError
from pulseboard.schemas.status import EMPTY, Status
from pulseboard.services.granularity import QueryWindow, Resolution

logger = structlog.get_logger()

# Buckets kept per resolution: 24 hours of minutes, 30 days of hours, a year of days
RETENTION = {
    Resolution.minute: 1440,
    Resolution.hour: 720,
    Resolution.day: 365,
}

# Named summary windows -> (resolution, bucket count)
NAMED_WINDOWS = {
    "24h": (Resolution.hour, 24),
    "7d": (Resolution.hour, 168),
    "30d": (Resolution.day, 30),
}


@dataclass
class Bucket:
    period_start: datetime
    period_end: datetime
    resolution: Resolution | None = None  # None for display slots
    up: int = 0
    down: int = 0
    pending: int = 0
    maintenance: int = 0
    ping_sum: float = 0.0
    ping_count: int = 0

    @property
    def total(self) -> int:
        return self.up + self.down + self.pending + self.maintenance

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    @property
    def avg_ping(self) -> float | None:
        if self.ping_count == 0:
            return None
        return self.ping_sum / self.ping_count

    @property
    def uptime_ratio(self) -> float:
        return self.up / self.total if self.total else 0.0

    @property
    def downtime_ratio(self) -> float:
        return self.down / self.total if self.total else 0.0

    @property
    def representative_status(self) -> str:
        """DOWN > MAINTENANCE > PENDING > UP; EMPTY when nothing was observed."""
        if self.down:
            return Status.down.value
        if self.maintenance:
            return Status.maintenance.value
        if self.pending:
            return Status.pending.value
        if self.up:
            return Status.up.value
        return EMPTY

    def add(self, status: Status | str, ping: float | None = None) -> None:
        status = Status(status)
        if status == Status.up:
            self.up += 1
        elif status == Status.down:
            self.down += 1
        elif status == Status.pending:
            self.pending += 1
        else:
            self.maintenance += 1
        if ping is not None and not math.isnan(ping):
            self.ping_sum += ping
            self.ping_count += 1

    def merge(self, other: "Bucket") -> None:
        self.up += other.up
        self.down += other.down
        self.pending += other.pending
        self.maintenance += other.maintenance
        self.ping_sum += other.ping_sum
        self.ping_count += other.ping_count


@dataclass(frozen=True)
class WindowSummary:
    uptime_ratio: float
    avg_ping: float | None
    total_beats: int


def period_key(at: datetime, resolution: Resolution) -> int:
    """Epoch second of the start of the period containing ``at``."""
    seconds = int(as_utc(at).timestamp())
    return seconds - seconds % resolution.seconds


def empty_bucket(key: int, resolution: Resolution) -> Bucket:
    return Bucket(
        period_start=from_epoch(key),
        period_end=from_epoch(key + resolution.seconds),
        resolution=resolution,
    )


def summarize(buckets: list[Bucket]) -> WindowSummary:
    """Aggregate uptime and mean ping across buckets."""
    total = Bucket(period_start=datetime.min, period_end=datetime.min)
    for bucket in buckets:
        total.merge(bucket)
    return WindowSummary(
        uptime_ratio=total.uptime_ratio,
        avg_ping=total.avg_ping,
        total_beats=total.total,
    )


def merge_into_slots(buckets: list[Bucket], start: datetime, end: datetime, count: int) -> list[Bucket]:
    """Merge buckets into ``count`` equal display slots spanning ``[start, end]``.

    A bucket lands in the slot containing its period start; one that started
    before ``start`` but overlaps it goes to the first slot.
    """
    span = (end - start).total_seconds()
    if span <= 0 or count <= 1:
        slot = Bucket(period_start=start, period_end=end)
        for bucket in buckets:
            if bucket.period_end > start and bucket.period_start <= end:
                slot.merge(bucket)
        return [slot]

    slot_seconds = span / count
    slots = [
        Bucket(
            period_start=start + timedelta(seconds=i * slot_seconds),
            period_end=start + timedelta(seconds=(i + 1) * slot_seconds),
        )
        for i in range(count)
    ]
    for bucket in buckets:
        if bucket.is_empty or bucket.period_end <= start or bucket.period_start > end:
            continue
        offset = (bucket.period_start - start).total_seconds()
        index = min(max(int(offset // slot_seconds), 0), count - 1)
        slots[index].merge(bucket)
    return slots


def display_resolution(days: float) -> Resolution:
    if days <= 1:
        return Resolution.minute
    if days <= 30:
        return Resolution.hour
    return Resolution.day


class TargetAggregator:
    """Rolling minute/hour/day buckets for one target."""

    def __init__(self, target_id: int):
        self.target_id = target_id
        self._buckets: dict[Resolution, dict[int, Bucket]] = {res: {} for res in Resolution}

    def ingest(self, status: Status | str, ping: float | None = None, at: datetime | None = None) -> None:
        """Count one status (and ping) into the open bucket of every resolution."""
        at = as_utc(at) if at else utcnow()
        for resolution, buckets in self._buckets.items():
            key = period_key(at, resolution)
            bucket = buckets.get(key)
            if bucket is None:
                bucket = buckets[key] = empty_bucket(key, resolution)
                self._prune(resolution)
            bucket.add(status, ping)

    def _prune(self, resolution: Resolution) -> None:
        buckets = self._buckets[resolution]
        excess = len(buckets) - RETENTION[resolution]
        if excess > 0:
            for key in sorted(buckets)[:excess]:
                del buckets[key]

    def read_recent(self, resolution: Resolution, count: int, now: datetime | None = None) -> list[Bucket]:
        """The last ``count`` periods up to and including the current one, oldest first.

        Periods without observations are returned as empty buckets.
        """
        count = min(max(count, 1), RETENTION[resolution])
        current = period_key(now or utcnow(), resolution)
        first = current - (count - 1) * resolution.seconds
        buckets = self._buckets[resolution]

        result = []
        for key in range(first, current + 1, resolution.seconds):
            bucket = buckets.get(key)
            result.append(replace(bucket) if bucket else empty_bucket(key, resolution))
        return result

    def read_custom(self, day_count: float, resolution: Resolution, now: datetime | None = None) -> list[Bucket]:
        """Buckets covering the last ``day_count`` days at ``resolution``."""
        count = math.ceil(day_count * resolution.per_day)
        return self.read_recent(resolution, count, now)

    def read_named_window(self, name: str, now: datetime | None = None) -> WindowSummary:
        if name not in NAMED_WINDOWS:
            raise QueryValidationError(
                f"Unknown summary window '{name}'. Use one of: {', '.join(NAMED_WINDOWS)}"
            )
        resolution, count = NAMED_WINDOWS[name]
        return summarize(self.read_recent(resolution, count, now))

    def display_buckets(self, window: QueryWindow, count: int) -> list[Bucket]:
        """``count`` display slots over a recent window, built from the rollups."""
        resolution = display_resolution(window.days)
        source = self.read_custom(window.days, resolution, window.end)
        return merge_into_slots(source, window.start, window.end, count)


class AggregatorRegistry:
    """Holds one aggregator per target, warmed from stored heartbeats on first use."""

    def __init__(self, store=None, warm_days: int | None = None):
        if store is None:
            from pulseboard.services.history import HeartbeatStore

            store = HeartbeatStore()
        self._store = store
        self._warm_days = settings.pulse_warm_days if warm_days is None else warm_days
        self._aggregators: dict[int, TargetAggregator] = {}
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def warm_days(self) -> int:
        return self._warm_days

    def covers(self, resolution: Resolution, count: int) -> bool:
        """True when ``count`` periods back from now fall inside the warm-up horizon.

        Older periods were never loaded into a fresh aggregator and must be read
        from stored heartbeats instead.
        """
        return count * resolution.seconds <= self._warm_days * 86400

    def __contains__(self, target_id: int) -> bool:
        return target_id in self._aggregators

    async def get(self, target_id: int) -> TargetAggregator:
        aggregator = self._aggregators.get(target_id)
        if aggregator is not None:
            return aggregator

        async with self._locks[target_id]:
            aggregator = self._aggregators.get(target_id)
            if aggregator is None:
                aggregator = TargetAggregator(target_id)
                await self._warm(aggregator)
                self._aggregators[target_id] = aggregator
        return aggregator

    async def _warm(self, aggregator: TargetAggregator) -> None:
        if self._warm_days <= 0:
            return
        now = utcnow()
        events = await self._store.query_events(
            aggregator.target_id, now - timedelta(days=self._warm_days), now
        )
        for event in events:
            aggregator.ingest(event.status, event.ping, event.time)
        logger.info("aggregator_warmed", target_id=aggregator.target_id, events=len(events))

    def drop(self, target_id: int) -> None:
        self._aggregators.pop(target_id, None)
        self._locks.pop(target_id, None)
