"""Startup schema management for the heartbeat database.

A database is either tracked by Alembic (it has an ``alembic_version`` row)
and gets upgraded, or untracked, in which case any missing Pulseboard tables
are created from the models and the result is stamped at head.
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path

import structlog
from alembic import command
from alembic.config import Config
from sqlalchemy import inspect, text

import pulseboard.core.database as db_module

logger = structlog.get_logger()

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

PULSE_TABLES = frozenset({"targets", "heartbeats", "maintenance_windows"})


@dataclass(frozen=True)
class SchemaState:
    tables: frozenset[str]
    revision: str | None

    @property
    def tracked(self) -> bool:
        return self.revision is not None

    @property
    def missing(self) -> frozenset[str]:
        return PULSE_TABLES - self.tables


def _alembic_config() -> Config:
    cfg = Config(str(_PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    # structlog owns logging; keep alembic.ini from reconfiguring it
    cfg.attributes["configure_logger"] = False
    return cfg


def _read_schema_state(connection) -> SchemaState:
    tables = frozenset(inspect(connection).get_table_names())
    revision = None
    if "alembic_version" in tables:
        row = connection.execute(text("SELECT version_num FROM alembic_version")).first()
        revision = row[0] if row else None
    return SchemaState(tables=tables & PULSE_TABLES, revision=revision)


async def ensure_db_migrated() -> str:
    """Bring the heartbeat database to the head revision.

    Returns the action taken: ``"upgrade"`` for a tracked database,
    ``"create"`` when untracked tables had to be created, ``"stamp"`` when an
    untracked database already had the full schema.
    """
    engine = db_module.engine
    if engine.url.get_backend_name() == "sqlite" and engine.url.database:
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    async with engine.begin() as conn:
        state = await conn.run_sync(_read_schema_state)
    cfg = _alembic_config()

    if state.tracked:
        logger.info("schema_upgrade", revision=state.revision)
        await asyncio.to_thread(command.upgrade, cfg, "head")
        return "upgrade"

    if state.missing:
        if state.tables:
            logger.warning("schema_partial", present=sorted(state.tables), missing=sorted(state.missing))
        async with engine.begin() as conn:
            await conn.run_sync(db_module.Base.metadata.create_all)
        action = "create"
    else:
        action = "stamp"

    logger.info("schema_stamped", action=action)
    await asyncio.to_thread(command.stamp, cfg, "head")
    return action
