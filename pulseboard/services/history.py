"""Durable heartbeat history: range queries, maintenance checks and raw folds."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

import pulseboard.core.database as db_module
from pulseboard.core.clock import as_utc, to_db, utcnow
from pulseboard.core.database import Heartbeat, MaintenanceWindow
from pulseboard.core.exceptions import StoreUnavailableError
from pulseboard.services.aggregator import Bucket, empty_bucket, period_key
from pulseboard.services.granularity import Resolution


@dataclass(frozen=True)
class HeartbeatEvent:
    """Detached view of a stored heartbeat."""

    target_id: int
    time: datetime
    status: str
    retries: int
    ping: float | None
    msg: str | None


def _to_event(row: Heartbeat) -> HeartbeatEvent:
    return HeartbeatEvent(
        target_id=row.target_id,
        time=as_utc(row.time),
        status=row.status,
        retries=row.retries or 0,
        ping=row.ping,
        msg=row.msg,
    )


class HeartbeatStore:
    def __init__(self, session_factory: async_sessionmaker | None = None):
        self._session_factory_override = session_factory

    @property
    def _session_factory(self) -> async_sessionmaker:
        return self._session_factory_override or db_module.async_session

    async def query_events(self, target_id: int, start: datetime, end: datetime) -> list[HeartbeatEvent]:
        """Heartbeats of one target with ``start <= time <= end``, oldest first."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Heartbeat)
                    .where(
                        Heartbeat.target_id == target_id,
                        Heartbeat.time >= to_db(start),
                        Heartbeat.time <= to_db(end),
                    )
                    .order_by(Heartbeat.time.asc(), Heartbeat.id.asc())
                )
                return [_to_event(row) for row in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"Failed to read heartbeats for target {target_id}.",
                details={"target_id": target_id, "reason": type(exc).__name__},
            ) from exc

    async def latest(self, target_id: int) -> Heartbeat | None:
        """Most recent stored heartbeat for a target."""
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Heartbeat)
                    .where(Heartbeat.target_id == target_id)
                    .order_by(Heartbeat.time.desc(), Heartbeat.id.desc())
                    .limit(1)
                )
                return result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"Failed to read the latest heartbeat for target {target_id}.",
                details={"target_id": target_id, "reason": type(exc).__name__},
            ) from exc

    async def is_under_maintenance(self, target_id: int, at: datetime | None = None) -> bool:
        at = to_db(at or utcnow())
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(MaintenanceWindow.id)
                    .where(
                        MaintenanceWindow.target_id == target_id,
                        MaintenanceWindow.active == True,  # noqa: E712
                        MaintenanceWindow.start_time <= at,
                        or_(MaintenanceWindow.end_time.is_(None), MaintenanceWindow.end_time >= at),
                    )
                    .limit(1)
                )
                return result.first() is not None
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                f"Failed to read maintenance windows for target {target_id}.",
                details={"target_id": target_id, "reason": type(exc).__name__},
            ) from exc


def fold_events(events: Iterable[HeartbeatEvent], resolution: Resolution) -> list[Bucket]:
    """Group events into synthetic buckets by truncating to the period start.

    Only periods with at least one event are returned, oldest first.
    """
    buckets: dict[int, Bucket] = {}
    for event in events:
        key = period_key(event.time, resolution)
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = empty_bucket(key, resolution)
        bucket.add(event.status, event.ping)
    return [buckets[key] for key in sorted(buckets)]
