from enum import Enum

from pydantic import BaseModel, Field


class Status(str, Enum):
    up = "up"
    down = "down"
    pending = "pending"
    maintenance = "maintenance"


# Representative status of a bucket with no observations
EMPTY = "empty"


class OutputShape(str, Enum):
    detailed = "detailed"  # uptime/downtime ratio series
    heartbeat = "heartbeat"  # one discrete status per display slot


class StatusQuery(BaseModel):
    """Time-series query parameters shared by the status and preset endpoints."""

    granularity: str = "hour"  # minute, hour, day, auto
    days: float = Field(1.0, gt=0)
    max_points: int = Field(100, ge=1, le=525600)
    format: OutputShape = OutputShape.detailed
    start_date: str | None = None  # ISO string or YYYY-MM-DD
    end_date: str | None = None
    date: str | None = None  # YYYY-MM-DD, shorthand for that full day
    preset: str | None = None  # echoed back in the response config


class DataPoint(BaseModel):
    timestamp: int  # epoch seconds, start of the period (end of the slot for heartbeat shape)
    time: str
    status: str  # Status value or EMPTY
    uptime: float = 0.0
    downtime: float = 0.0
    avg_ping: float | None = None
    heartbeat_count: int = 0


class SeriesSummary(BaseModel):
    uptime: float
    avg_ping: float | None = None
    total_data_points: int


class TargetResult(BaseModel):
    id: int
    name: str | None = None
    type: str | None = None
    url: str | None = None
    actual_granularity: str | None = None
    data_points: list[DataPoint] | None = None
    summary: SeriesSummary | None = None
    error: str | None = None


class QueryConfig(BaseModel):
    preset: str | None = None
    granularity: str
    days: float
    max_points: int
    format: str
    start_date: str
    end_date: str
    timestamp: str


class StatusResponse(BaseModel):
    targets: list[TargetResult]
    config: QueryConfig


class WindowAvailability(BaseModel):
    uptime: float
    avg_ping: float | None = None
    total_beats: int


class TargetSummaryResponse(BaseModel):
    id: int
    name: str
    current_status: str | None = None  # None until the first heartbeat
    window_24h: WindowAvailability
    window_7d: WindowAvailability
    window_30d: WindowAvailability


class PushResponse(BaseModel):
    ok: bool = True
    status: Status
    retries: int
    important: bool
    notify: bool
