import secrets
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

import pulseboard.core.database as db_module
from pulseboard.core.clock import to_db, utcnow
from pulseboard.core.database import MaintenanceWindow, Target
from pulseboard.core.exceptions import NotFoundError, QueryValidationError, StoreUnavailableError

PUSH_TOKEN_BYTES = 16  # 16 bytes → 32 hex chars


def generate_push_token() -> str:
    return secrets.token_hex(PUSH_TOKEN_BYTES)


class TargetService:
    def __init__(self, session_factory: async_sessionmaker | None = None):
        self._session_factory_override = session_factory

    @property
    def _session_factory(self) -> async_sessionmaker:
        return self._session_factory_override or db_module.async_session

    async def get_target(self, target_id: int) -> Target:
        async with self._session_factory() as session:
            target = await session.get(Target, target_id)
        if target is None:
            raise NotFoundError(f"Target {target_id} not found.", details={"target_id": target_id})
        return target

    async def get_by_push_token(self, push_token: str) -> Target:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Target).where(Target.push_token == push_token, Target.active == True)  # noqa: E712
                )
                target = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise StoreUnavailableError(
                "Failed to look up the push token.", details={"reason": type(exc).__name__}
            ) from exc
        if target is None:
            raise NotFoundError("Target not found or not active.")
        return target

    async def list_targets(self, active_only: bool = False) -> list[Target]:
        async with self._session_factory() as session:
            stmt = select(Target).order_by(Target.id)
            if active_only:
                stmt = stmt.where(Target.active == True)  # noqa: E712
            result = await session.execute(stmt)
            return list(result.scalars().all())

    async def active_target_ids(self) -> list[int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(Target.id).where(Target.active == True).order_by(Target.id)  # noqa: E712
            )
            return list(result.scalars().all())

    async def create_target(
        self,
        name: str,
        type: str = "push",
        url: str | None = None,
        max_retries: int = 0,
        upside_down: bool = False,
        resend_interval: int = 0,
    ) -> Target:
        if max_retries < 0 or resend_interval < 0:
            raise QueryValidationError("'max_retries' and 'resend_interval' must not be negative.")
        target = Target(
            name=name,
            type=type,
            url=url,
            push_token=generate_push_token(),
            active=True,
            max_retries=max_retries,
            upside_down=upside_down,
            resend_interval=resend_interval,
        )
        async with self._session_factory() as session:
            session.add(target)
            await session.commit()
            await session.refresh(target)
        return target

    async def add_maintenance(
        self,
        target_id: int,
        start: datetime | None = None,
        end: datetime | None = None,
        title: str = "",
    ) -> MaintenanceWindow:
        await self.get_target(target_id)
        start = start or utcnow()
        if end is not None and to_db(end) < to_db(start):
            raise QueryValidationError("Maintenance end must be after its start.")
        window = MaintenanceWindow(
            target_id=target_id,
            title=title,
            start_time=to_db(start),
            end_time=to_db(end) if end else None,
            active=True,
        )
        async with self._session_factory() as session:
            session.add(window)
            await session.commit()
            await session.refresh(window)
        return window
