"""Liveness endpoint."""

from fastapi import APIRouter

from steward.dependencies import SchedulerDep
from steward.models.api import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(scheduler: SchedulerDep) -> HealthResponse:
    return HealthResponse(
        status="ok",
        scheduler_running=scheduler.running,
        registered_tasks=len(scheduler.registered_tasks()),
    )
