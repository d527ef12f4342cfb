from fastapi import APIRouter

from pulseboard.api.v1.health import router as health_router
from pulseboard.api.v1.push import router as push_router
from pulseboard.api.v1.status import router as status_router
from pulseboard.api.v1.targets import router as targets_router

v1_router = APIRouter()

v1_router.include_router(health_router, tags=["Health"])
v1_router.include_router(status_router, tags=["Status"])
v1_router.include_router(targets_router, tags=["Targets"])
v1_router.include_router(push_router, tags=["Push"])
