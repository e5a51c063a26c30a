"""Scheduler inspection and control endpoints."""

from fastapi import APIRouter, HTTPException

from steward.dependencies import SchedulerDep
from steward.models.api import ReloadResponse, TaskConfigResponse, TaskRunResponse
from steward.services.scheduler import TaskNotFoundError

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/tasks")
async def list_tasks(scheduler: SchedulerDep) -> list[TaskConfigResponse]:
    entries = await scheduler.list_tasks()
    return [
        TaskConfigResponse(
            task_id=entry["task"].task_id,
            task_name=entry["task"].task_name,
            description=entry["task"].description,
            cron_schedule=entry["task"].cron_schedule,
            model=entry["task"].model,
            enabled=entry["task"].enabled,
            registered=entry["registered"],
            max_retries=entry["task"].max_retries,
            consecutive_failures=entry["task"].consecutive_failures,
            last_run_at=(
                entry["task"].last_run_at.isoformat() if entry["task"].last_run_at else None
            ),
            last_run_status=entry["task"].last_run_status,
            last_error=entry["task"].last_error,
        )
        for entry in entries
    ]


@router.post("/reload")
async def reload_tasks(scheduler: SchedulerDep) -> ReloadResponse:
    return ReloadResponse(**await scheduler.reload())


@router.post("/tasks/{task_name}/run")
async def run_task(task_name: str, scheduler: SchedulerDep) -> TaskRunResponse:
    """Fire a task now. started is false when it is already running."""
    try:
        execution = await scheduler.trigger(task_name)
    except TaskNotFoundError:
        raise HTTPException(status_code=404, detail=f"Task {task_name} not found")
    return TaskRunResponse(task_name=task_name, started=execution is not None)
