"""Unit tests for the in-memory rollups and the aggregator registry."""

from datetime import datetime, timedelta, timezone

import pytest

from pulseboard.core.exceptions import QueryValidationError
from pulseboard.schemas.status import EMPTY, Status
from pulseboard.services.aggregator import (
    RETENTION,
    AggregatorRegistry,
    Bucket,
    TargetAggregator,
    merge_into_slots,
    period_key,
    summarize,
)
from pulseboard.services.granularity import QueryWindow, Resolution
from pulseboard.services.history import HeartbeatEvent, fold_events

NOW = datetime(2024, 3, 10, 12, 30, 30, tzinfo=timezone.utc)


def bucket(start, **counts):
    b = Bucket(period_start=start, period_end=start + timedelta(minutes=1), resolution=Resolution.minute)
    for status, n in counts.items():
        for _ in range(n):
            b.add(status)
    return b


class TestBucket:
    def test_ratios(self):
        b = bucket(NOW, up=3, down=1)
        assert b.total == 4
        assert b.uptime_ratio == 0.75
        assert b.downtime_ratio == 0.25

    def test_empty_bucket(self):
        b = bucket(NOW)
        assert b.is_empty
        assert b.uptime_ratio == 0.0
        assert b.avg_ping is None
        assert b.representative_status == EMPTY

    @pytest.mark.parametrize(
        "counts,expected",
        [({"up": 5, "down": 1}, "down"), ({"up": 5, "maintenance": 1, "pending": 1}, "maintenance"),
         ({"up": 5, "pending": 1}, "pending"), ({"up": 2}, "up")],
    )
    def test_representative_status_priority(self, counts, expected):
        assert bucket(NOW, **counts).representative_status == expected

    def test_ping_average_ignores_missing_and_nan(self):
        b = bucket(NOW)
        b.add(Status.up, 10.0)
        b.add(Status.up, 30.0)
        b.add(Status.up, None)
        b.add(Status.up, float("nan"))
        assert b.total == 4
        assert b.avg_ping == 20.0

    def test_summarize(self):
        summary = summarize([bucket(NOW, up=3), bucket(NOW, down=1), bucket(NOW)])
        assert summary.total_beats == 4
        assert summary.uptime_ratio == 0.75


class TestTargetAggregator:
    def test_ingest_counts_every_resolution(self):
        agg = TargetAggregator(1)
        agg.ingest(Status.up, 12.0, NOW)
        for resolution in Resolution:
            [current] = agg.read_recent(resolution, 1, NOW)
            assert current.up == 1
            assert current.avg_ping == 12.0

    def test_read_recent_gap_fills(self):
        agg = TargetAggregator(1)
        agg.ingest(Status.up, None, NOW - timedelta(minutes=2))
        agg.ingest(Status.down, None, NOW)
        buckets = agg.read_recent(Resolution.minute, 4, NOW)
        assert [b.representative_status for b in buckets] == [EMPTY, "up", EMPTY, "down"]
        assert buckets[-1].period_start == datetime(2024, 3, 10, 12, 30, tzinfo=timezone.utc)

    def test_read_recent_returns_copies(self):
        agg = TargetAggregator(1)
        agg.ingest(Status.up, None, NOW)
        agg.read_recent(Resolution.minute, 1, NOW)[0].add(Status.down)
        assert agg.read_recent(Resolution.minute, 1, NOW)[0].down == 0

    def test_read_recent_capped_at_retention(self):
        agg = TargetAggregator(1)
        assert len(agg.read_recent(Resolution.minute, 5000, NOW)) == RETENTION[Resolution.minute]

    def test_retention_prunes_oldest(self):
        agg = TargetAggregator(1)
        start = NOW - timedelta(minutes=RETENTION[Resolution.minute] + 10)
        for i in range(RETENTION[Resolution.minute] + 11):
            agg.ingest(Status.up, None, start + timedelta(minutes=i))
        assert len(agg._buckets[Resolution.minute]) == RETENTION[Resolution.minute]
        assert min(agg._buckets[Resolution.minute]) == period_key(NOW, Resolution.minute) - (
            RETENTION[Resolution.minute] - 1
        ) * 60

    def test_read_custom(self):
        agg = TargetAggregator(1)
        assert len(agg.read_custom(2, Resolution.hour, NOW)) == 48
        assert len(agg.read_custom(0.5, Resolution.minute, NOW)) == 720

    def test_named_window(self):
        agg = TargetAggregator(1)
        agg.ingest(Status.up, 10.0, NOW)
        agg.ingest(Status.down, 30.0, NOW - timedelta(hours=3))
        agg.ingest(Status.up, None, NOW - timedelta(days=3))
        summary_24h = agg.read_named_window("24h", NOW)
        assert summary_24h.total_beats == 2
        assert summary_24h.uptime_ratio == 0.5
        assert summary_24h.avg_ping == 20.0
        assert agg.read_named_window("7d", NOW).total_beats == 3

    def test_unknown_named_window(self):
        with pytest.raises(QueryValidationError):
            TargetAggregator(1).read_named_window("90d", NOW)

    def test_display_buckets(self):
        agg = TargetAggregator(1)
        agg.ingest(Status.down, None, NOW - timedelta(minutes=5))
        window = QueryWindow(NOW - timedelta(days=1), NOW, 1.0, is_relative=True)
        slots = agg.display_buckets(window, 24)
        assert len(slots) == 24
        assert slots[-1].representative_status == "down"
        assert all(slot.is_empty for slot in slots[:-1])


class TestMergeIntoSlots:
    def test_equal_slots_span_window(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        slots = merge_into_slots([], start, start + timedelta(hours=10), 5)
        assert [s.period_start.hour for s in slots] == [0, 2, 4, 6, 8]
        assert slots[-1].period_end == start + timedelta(hours=10)

    def test_bucket_lands_in_containing_slot(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        b = bucket(start + timedelta(hours=3), up=1, down=1)
        slots = merge_into_slots([b], start, start + timedelta(hours=10), 5)
        assert slots[1].total == 2
        assert slots[1].representative_status == "down"

    def test_single_slot(self):
        start = datetime(2024, 1, 1, tzinfo=timezone.utc)
        slots = merge_into_slots([bucket(start, up=2)], start, start + timedelta(hours=1), 1)
        assert len(slots) == 1
        assert slots[0].up == 2


class TestFoldMatchesRollups:
    def test_fold_of_raw_events_equals_minute_rollups(self):
        agg = TargetAggregator(7)
        events = []
        for i, status in enumerate(["up", "up", "down", "pending", "up", "maintenance", "up"]):
            at = NOW - timedelta(seconds=25 * i)
            agg.ingest(status, float(i), at)
            events.append(HeartbeatEvent(7, at, status, 0, float(i), None))
        events.sort(key=lambda e: e.time)

        folded = fold_events(events, Resolution.minute)
        rolled = [b for b in agg.read_recent(Resolution.minute, 10, NOW) if not b.is_empty]

        assert [(b.period_start, b.up, b.down, b.pending, b.maintenance, b.ping_sum) for b in folded] == [
            (b.period_start, b.up, b.down, b.pending, b.maintenance, b.ping_sum) for b in rolled
        ]


class FakeStore:
    def __init__(self, events):
        self.events = events
        self.calls = 0

    async def query_events(self, target_id, start, end):
        self.calls += 1
        return [e for e in self.events if e.target_id == target_id and start <= e.time <= end]


@pytest.mark.asyncio
class TestAggregatorRegistry:
    async def test_warms_from_store_once(self):
        at = datetime.now(timezone.utc) - timedelta(minutes=3)
        store = FakeStore([HeartbeatEvent(1, at, "up", 0, 5.0, None)])
        registry = AggregatorRegistry(store=store, warm_days=30)

        first = await registry.get(1)
        second = await registry.get(1)

        assert first is second
        assert store.calls == 1
        assert 1 in registry
        assert first.read_named_window("24h").total_beats == 1

    async def test_warm_disabled(self):
        store = FakeStore([])
        registry = AggregatorRegistry(store=store, warm_days=0)
        await registry.get(1)
        assert store.calls == 0

    async def test_drop(self):
        registry = AggregatorRegistry(store=FakeStore([]), warm_days=0)
        await registry.get(3)
        registry.drop(3)
        assert 3 not in registry

    async def test_covers_only_the_warm_up_horizon(self):
        registry = AggregatorRegistry(store=FakeStore([]), warm_days=30)
        assert registry.covers(Resolution.hour, 720)
        assert registry.covers(Resolution.day, 30)
        assert not registry.covers(Resolution.day, 31)
        assert not AggregatorRegistry(store=FakeStore([]), warm_days=0).covers(Resolution.minute, 1)
