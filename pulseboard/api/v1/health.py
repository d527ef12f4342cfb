import time

import structlog
from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import pulseboard.core.database as db_module
from pulseboard.schemas.health import HealthResponse

router = APIRouter()
logger = structlog.get_logger()

_start_time = time.monotonic()


@router.get("/health")
async def health_check() -> HealthResponse:
    """Liveness check; reports degraded when the heartbeat store is unreachable."""
    try:
        async with db_module.engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError as exc:
        logger.warning("health_database_unreachable", error=str(exc))
        db_ok = False

    return HealthResponse(
        status="ok" if db_ok else "degraded",
        database="connected" if db_ok else "disconnected",
        uptime_seconds=round(time.monotonic() - _start_time, 1),
    )
