from fastapi import APIRouter, Depends, Query

from pulseboard.core.exceptions import QueryValidationError
from pulseboard.dependencies import get_planner
from pulseboard.schemas.status import OutputShape, StatusQuery, StatusResponse
from pulseboard.services.planner import QueryPlanner
from pulseboard.services.presets import resolve_preset

router = APIRouter()


def parse_target_ids(raw: str | None) -> list[int] | None:
    """Comma-separated target ids; ``None`` when absent means all active targets."""
    if raw is None or not raw.strip():
        return None
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise QueryValidationError(
            "'target_ids' must be a comma-separated list of integers",
            details={"target_ids": raw},
        ) from None


@router.get("/api/status")
async def query_status(
    granularity: str = "hour",
    days: float = Query(1.0, gt=0),
    max_points: int = Query(100, ge=1, le=525600),
    target_ids: str | None = None,
    format: OutputShape = OutputShape.detailed,
    start_date: str | None = None,
    end_date: str | None = None,
    date: str | None = None,
    planner: QueryPlanner = Depends(get_planner),
) -> StatusResponse:
    """Uptime series for one or more targets at a chosen granularity."""
    query = StatusQuery(
        granularity=granularity,
        days=days,
        max_points=max_points,
        format=format,
        start_date=start_date,
        end_date=end_date,
        date=date,
    )
    return await planner.query_targets(parse_target_ids(target_ids), query)


@router.get("/api/dashboard/status")
async def dashboard_status(
    preset: str = "hourly",
    days: float | None = Query(None, gt=0),
    interval: int | None = Query(None, description="Minutes between points (custom preset)"),
    target_ids: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    date: str | None = None,
    planner: QueryPlanner = Depends(get_planner),
) -> StatusResponse:
    """Preset-driven uptime series (minutely, hourly, daily, yearly, custom)."""
    plan = resolve_preset(preset, days=days, interval=interval)
    query = StatusQuery(
        granularity=plan.granularity.value,
        days=plan.days,
        max_points=plan.max_points,
        start_date=start_date,
        end_date=end_date,
        date=date,
        preset=preset,
    )
    return await planner.query_targets(parse_target_ids(target_ids), query)
