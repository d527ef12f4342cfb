from fastapi import APIRouter, Depends

from pulseboard.dependencies import get_planner
from pulseboard.schemas.status import TargetSummaryResponse, WindowAvailability
from pulseboard.services.aggregator import WindowSummary
from pulseboard.services.history import HeartbeatStore
from pulseboard.services.planner import QueryPlanner
from pulseboard.services.targets import TargetService

router = APIRouter()


def _availability(summary: WindowSummary) -> WindowAvailability:
    return WindowAvailability(
        uptime=summary.uptime_ratio,
        avg_ping=round(summary.avg_ping, 2) if summary.avg_ping is not None else None,
        total_beats=summary.total_beats,
    )


@router.get("/api/targets/{target_id}/summary")
async def target_summary(
    target_id: int,
    planner: QueryPlanner = Depends(get_planner),
) -> TargetSummaryResponse:
    """Latest status and 24h/7d/30d availability for one target."""
    target = await TargetService().get_target(target_id)
    latest = await HeartbeatStore().latest(target_id)

    return TargetSummaryResponse(
        id=target.id,
        name=target.name,
        current_status=latest.status if latest else None,
        window_24h=_availability(await planner.window_summary(target_id, "24h")),
        window_7d=_availability(await planner.window_summary(target_id, "7d")),
        window_30d=_availability(await planner.window_summary(target_id, "30d")),
    )
