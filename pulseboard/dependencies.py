from fastapi import Depends, Request

from pulseboard.services.aggregator import AggregatorRegistry
from pulseboard.services.ingest import HeartbeatIngestor
from pulseboard.services.planner import QueryPlanner


def get_registry(request: Request) -> AggregatorRegistry:
    """Return the aggregator registry stored on app state during lifespan."""
    return request.app.state.aggregators


def get_planner(registry: AggregatorRegistry = Depends(get_registry)) -> QueryPlanner:
    return QueryPlanner(registry)


def get_ingestor(request: Request) -> HeartbeatIngestor:
    return request.app.state.ingestor
