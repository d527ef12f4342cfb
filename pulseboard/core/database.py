import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from pulseboard.config import settings


class Base(DeclarativeBase):
    pass


# ── Targets ──────────────────────────────────────────────────────────────────


class Target(Base):
    __tablename__ = "targets"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255))
    type: Mapped[str] = mapped_column(String(20), default="push")
    url: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    push_token: Mapped[str | None] = mapped_column(String(64), unique=True, index=True, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    max_retries: Mapped[int] = mapped_column(Integer, default=0)
    upside_down: Mapped[bool] = mapped_column(Boolean, default=False)
    resend_interval: Mapped[int] = mapped_column(Integer, default=0)  # 0 = never resend
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime, server_default=func.now()
    )


# ── Heartbeats ───────────────────────────────────────────────────────────────


class Heartbeat(Base):
    """One health-check result together with the status derived from it."""

    __tablename__ = "heartbeats"
    __table_args__ = (Index("ix_heartbeats_target_time", "target_id", "time"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    target_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("targets.id", ondelete="CASCADE")
    )
    time: Mapped[datetime.datetime] = mapped_column(DateTime)
    status: Mapped[str] = mapped_column(String(20))  # up/down/pending/maintenance
    retries: Mapped[int] = mapped_column(Integer, default=0)
    ping: Mapped[float | None] = mapped_column(Float, nullable=True)
    msg: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration: Mapped[float | None] = mapped_column(Float, nullable=True)  # seconds since previous beat
    important: Mapped[bool] = mapped_column(Boolean, default=False)
    down_count: Mapped[int] = mapped_column(Integer, default=0)


# ── Maintenance ──────────────────────────────────────────────────────────────


class MaintenanceWindow(Base):
    __tablename__ = "maintenance_windows"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    target_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("targets.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(String(255), default="")
    start_time: Mapped[datetime.datetime] = mapped_column(DateTime)
    end_time: Mapped[datetime.datetime | None] = mapped_column(DateTime, nullable=True)  # None = open-ended
    active: Mapped[bool] = mapped_column(Boolean, default=True)


# ── Engine & Session ──────────────────────────────────────────────────────────

engine = create_async_engine(settings.pulse_db_url, echo=False)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Ensure database schema is up to date via Alembic migrations."""
    from pulseboard.core.migrations import ensure_db_migrated

    await ensure_db_migrated()


async def close_db() -> None:
    """Dispose of the engine."""
    await engine.dispose()
