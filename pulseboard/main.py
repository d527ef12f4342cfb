from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pulseboard.api.v1.router import v1_router
from pulseboard.config import settings
from pulseboard.core.database import close_db, init_db
from pulseboard.core.exceptions import PulseError, pulse_error_handler
from pulseboard.core.middleware import RequestLoggingMiddleware
from pulseboard.services.aggregator import AggregatorRegistry
from pulseboard.services.ingest import HeartbeatIngestor

_NAME_TO_LEVEL = {
    "debug": 10,
    "info": 20,
    "warning": 30,
    "warn": 30,
    "error": 40,
    "critical": 50,
}

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(
        _NAME_TO_LEVEL.get(settings.pulse_log_level.lower(), 20)
    ),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    await init_db()

    # Aggregators are created and warmed lazily, per target, on first use
    registry = AggregatorRegistry()
    app.state.aggregators = registry
    app.state.ingestor = HeartbeatIngestor(registry)

    logger.info("pulseboard_starting", db_url=settings.pulse_db_url, warm_days=settings.pulse_warm_days)
    yield

    await close_db()
    logger.info("pulseboard_stopping")


app = FastAPI(
    title="Pulseboard",
    description="Heartbeat status tracking and multi-resolution uptime queries",
    version="0.1.0",
    lifespan=lifespan,
)

# Exception handler
app.add_exception_handler(PulseError, pulse_error_handler)

# Middleware (Starlette: last-added = outermost)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.pulse_cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Routes
app.include_router(v1_router)


@app.get("/")
async def root():
    return {"service": "pulseboard", "version": "0.1.0"}
