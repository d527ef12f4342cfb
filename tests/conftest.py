from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from pulseboard.core.database import Base, Heartbeat, Target
from pulseboard.services.targets import generate_push_token


@pytest_asyncio.fixture
async def db_engine():
    """In-memory SQLite engine for tests."""
    engine = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Async session bound to the in-memory engine."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def now():
    """A recent instant in the middle of a minute, safely in the past."""
    return (datetime.now(timezone.utc) - timedelta(minutes=1)).replace(second=30, microsecond=0)


@pytest_asyncio.fixture
async def make_target(session_factory):
    """Factory that inserts a target row and returns it."""

    async def _make(name="api", max_retries=0, upside_down=False, resend_interval=0, active=True):
        target = Target(
            name=name,
            type="push",
            url=f"https://{name}.example.test",
            push_token=generate_push_token(),
            active=active,
            max_retries=max_retries,
            upside_down=upside_down,
            resend_interval=resend_interval,
        )
        async with session_factory() as session:
            session.add(target)
            await session.commit()
            await session.refresh(target)
        return target

    return _make


@pytest_asyncio.fixture
async def add_beats(session_factory):
    """Factory that stores ``(offset, status, ping)`` heartbeats relative to a base time."""

    async def _add(target_id, base, beats):
        async with session_factory() as session:
            for offset, status, ping in beats:
                at = base + offset if isinstance(offset, timedelta) else base + timedelta(seconds=offset)
                session.add(
                    Heartbeat(
                        target_id=target_id,
                        time=at.astimezone(timezone.utc).replace(tzinfo=None),
                        status=status,
                        retries=0,
                        ping=ping,
                        msg="OK",
                    )
                )
            await session.commit()

    return _add


@pytest_asyncio.fixture
async def app_with_db(db_engine):
    """FastAPI app wired to the in-memory test database."""
    import pulseboard.core.database as db_module

    # Patch the module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.async_session

    test_session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    db_module.engine = db_engine
    db_module.async_session = test_session_factory

    from pulseboard.main import app
    from pulseboard.services.aggregator import AggregatorRegistry
    from pulseboard.services.ingest import HeartbeatIngestor

    # The lifespan does not run under ASGITransport; wire app state directly
    registry = AggregatorRegistry()
    app.state.aggregators = registry
    app.state.ingestor = HeartbeatIngestor(registry)

    yield app

    db_module.engine = original_engine
    db_module.async_session = original_session


@pytest_asyncio.fixture
async def client(app_with_db):
    """Async HTTP client against the app."""
    transport = ASGITransport(app=app_with_db)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
