import math

from fastapi import APIRouter, Depends

from pulseboard.dependencies import get_ingestor
from pulseboard.schemas.status import PushResponse, Status
from pulseboard.services.ingest import HeartbeatIngestor

router = APIRouter()


def parse_ping(raw: str | None) -> float | None:
    """Ping in milliseconds; anything unparseable is recorded as no ping."""
    if raw is None:
        return None
    try:
        ping = float(raw)
    except ValueError:
        return None
    return ping if math.isfinite(ping) else None


@router.api_route("/api/push/{push_token}", methods=["GET", "POST"])
async def push_heartbeat(
    push_token: str,
    status: str = "up",
    msg: str = "OK",
    ping: str | None = None,
    ingestor: HeartbeatIngestor = Depends(get_ingestor),
) -> PushResponse:
    """Record a pushed check result. Any status other than ``up`` counts as down."""
    raw_signal = Status.up if status.strip().lower() == Status.up.value else Status.down
    result = await ingestor.push(push_token, raw_signal, ping=parse_ping(ping), msg=msg)
    record = result.record
    return PushResponse(
        ok=True,
        status=Status(record.status),
        retries=record.retries,
        important=result.important,
        notify=result.notify,
    )
