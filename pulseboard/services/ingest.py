"""Heartbeat ingestion: classifies raw check results and records them."""

import asyncio
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

import pulseboard.core.database as db_module
from pulseboard.core.clock import as_utc, to_db, utcnow
from pulseboard.core.database import Heartbeat, Target
from pulseboard.core.exceptions import StoreUnavailableError
from pulseboard.schemas.status import Status
from pulseboard.services.aggregator import AggregatorRegistry
from pulseboard.services.history import HeartbeatStore
from pulseboard.services.targets import TargetService
from pulseboard.services.transitions import (
    Transition,
    is_important_beat,
    is_important_for_notification,
    next_status,
)

logger = structlog.get_logger()

MAINTENANCE_MSG = "Target under maintenance"


@dataclass(frozen=True)
class IngestResult:
    record: Heartbeat
    important: bool
    notify: bool


class HeartbeatIngestor:
    """Serializes ingestion per target; different targets proceed independently."""

    def __init__(
        self,
        registry: AggregatorRegistry,
        session_factory: async_sessionmaker | None = None,
    ):
        self._registry = registry
        self._session_factory_override = session_factory
        self._store = HeartbeatStore(session_factory)
        self._targets = TargetService(session_factory)
        self._locks: dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def _session_factory(self) -> async_sessionmaker:
        return self._session_factory_override or db_module.async_session

    async def push(
        self,
        push_token: str,
        raw_signal: Status,
        ping: float | None = None,
        msg: str | None = "OK",
    ) -> IngestResult:
        """Ingest a pushed result for the active target owning ``push_token``."""
        target = await self._targets.get_by_push_token(push_token)
        return await self.ingest(target, raw_signal, ping=ping, msg=msg)

    async def ingest(
        self,
        target: Target,
        raw_signal: Status,
        ping: float | None = None,
        msg: str | None = None,
        at: datetime | None = None,
    ) -> IngestResult:
        async with self._locks[target.id]:
            # Resolve (and warm) the aggregator before writing so the new beat is counted once
            aggregator = await self._registry.get(target.id)
            now = as_utc(at) if at else utcnow()
            previous = await self._store.latest(target.id)

            if await self._store.is_under_maintenance(target.id, now):
                transition = Transition(Status.maintenance, 0)
                msg = MAINTENANCE_MSG
            else:
                transition = next_status(raw_signal, previous, target.max_retries, target.upside_down)

            is_first = previous is None
            previous_status = previous.status if previous else None
            duration = (now - as_utc(previous.time)).total_seconds() if previous else None

            important = is_important_beat(is_first, previous_status, transition.status)
            notify = is_important_for_notification(is_first, previous_status, transition.status)

            down_count = previous.down_count if previous else 0
            if notify:
                down_count = 0
            elif transition.status == Status.down and target.resend_interval > 0:
                down_count += 1
                if down_count >= target.resend_interval:
                    # Still down after the resend interval: alert again
                    notify = True
                    down_count = 0

            beat = Heartbeat(
                target_id=target.id,
                time=to_db(now),
                status=transition.status.value,
                retries=transition.retries,
                ping=ping,
                msg=msg,
                duration=duration,
                important=important,
                down_count=down_count,
            )
            try:
                async with self._session_factory() as session:
                    session.add(beat)
                    await session.commit()
                    await session.refresh(beat)
            except SQLAlchemyError as exc:
                raise StoreUnavailableError(
                    f"Failed to record heartbeat for target {target.id}.",
                    details={"target_id": target.id, "reason": type(exc).__name__},
                ) from exc

            aggregator.ingest(transition.status, ping, now)

        logger.debug(
            "heartbeat_ingested",
            target_id=target.id,
            previous_status=previous_status,
            status=transition.status.value,
            retries=transition.retries,
        )
        if important:
            logger.info(
                "target_status_changed",
                target_id=target.id,
                previous_status=previous_status,
                status=transition.status.value,
                notify=notify,
            )
        return IngestResult(record=beat, important=important, notify=notify)
