"""Scheduled task configuration tools."""

import logging
import re

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.repositories import TaskConfigRepository
from steward.services.cron import validate_cron
from steward.tools.registry import Tool, ToolContext

logger = logging.getLogger(__name__)

TASK_NAME_PATTERN = re.compile(r"^[a-z0-9_]+$")

# Fields whose change requires the live timer to be rebuilt from the fresh row.
SCHEDULE_FIELDS = ("cron_schedule", "prompt_template", "model")


class CreateTaskConfigInput(BaseModel):
    task_name: str = Field(description='Unique task identifier (snake_case, e.g. "daily_stuck_check")')
    description: str = Field(description="Human-readable task description")
    cron_schedule: str = Field(description='Cron expression (e.g. "0 13 * * *" for 1 PM daily)')
    prompt_template: str = Field(description="The full prompt sent to the model when this task runs")
    model: str | None = Field(default=None, description="Model to use (defaults to the service default)")
    enabled: bool = Field(default=True, description="Whether the task is active (default: true)")


class UpdateTaskConfigInput(BaseModel):
    task_name: str = Field(description="Task name to update")
    cron_schedule: str | None = Field(default=None, description="New cron schedule")
    prompt_template: str | None = Field(default=None, description="New prompt template")
    enabled: bool | None = Field(
        default=None,
        description="Enable or disable the task. Enabling a disabled task resets its failure count",
    )
    model: str | None = Field(default=None, description="New model")
    description: str | None = Field(default=None, description="New description")


async def _reload(context: ToolContext, task_name: str, force: list[str] | None = None) -> None:
    if context.reload_scheduler is None:
        return
    try:
        await context.reload_scheduler(force)
        logger.info(f"Scheduler reloaded after change to {task_name}")
    except Exception as e:
        # The periodic reconciliation picks the change up later
        logger.error(f"Failed to reload scheduler after change to {task_name}: {e}")


async def create_task_config(params: CreateTaskConfigInput, context: ToolContext) -> dict:
    if not TASK_NAME_PATTERN.match(params.task_name):
        return {
            "success": False,
            "error": (
                "Task name must be lowercase alphanumeric with underscores only "
                "(e.g. daily_stuck_check)"
            ),
        }
    if not validate_cron(params.cron_schedule):
        return {
            "success": False,
            "error": (
                f"Invalid cron schedule: {params.cron_schedule}. Must be a valid cron "
                'expression (e.g. "0 13 * * *")'
            ),
        }

    try:
        async with context.session_factory() as session:
            repo = TaskConfigRepository(session)
            if await repo.get_by_name(params.task_name) is not None:
                return {
                    "success": False,
                    "error": (
                        f'Task "{params.task_name}" already exists. '
                        "Use update_task_config to modify it."
                    ),
                }
            task = await repo.create(
                task_name=params.task_name,
                description=params.description,
                cron_schedule=params.cron_schedule,
                prompt_template=params.prompt_template,
                model=params.model or context.default_model,
                enabled=params.enabled,
                max_retries=3,
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error creating task config {params.task_name}: {e}")
        return {"success": False, "error": str(e)}

    logger.info(f"Created task config: {params.task_name} (schedule: {params.cron_schedule})")
    await _reload(context, params.task_name)

    return {
        "success": True,
        "task_id": task.id,
        "task_name": params.task_name,
        "schedule": params.cron_schedule,
        "message": "Task created and scheduled",
    }


async def update_task_config(params: UpdateTaskConfigInput, context: ToolContext) -> dict:
    updates = params.model_dump(exclude={"task_name"}, exclude_none=True)

    if "cron_schedule" in updates and not validate_cron(updates["cron_schedule"]):
        return {
            "success": False,
            "error": (
                f"Invalid cron schedule: {updates['cron_schedule']}. Must be a valid cron "
                'expression (e.g. "0 13 * * *")'
            ),
        }

    try:
        async with context.session_factory() as session:
            repo = TaskConfigRepository(session)
            existing = await repo.get_by_name(params.task_name)
            if existing is None:
                return {
                    "success": False,
                    "error": (
                        f'Task "{params.task_name}" not found. '
                        "Use create_task_config to create a new task."
                    ),
                }
            if not updates:
                return {
                    "success": False,
                    "error": "No updates provided. Specify at least one field to update.",
                }
            values = dict(updates)
            if updates.get("enabled") and not existing.enabled:
                # Re-enabling resets the breaker
                values["consecutive_failures"] = 0
            task = await repo.update(params.task_name, **values)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error updating task config {params.task_name}: {e}")
        return {"success": False, "error": str(e)}

    updated_fields = list(updates)
    logger.info(f"Updated task config: {params.task_name} (fields: {', '.join(updated_fields)})")

    force = [params.task_name] if any(f in updates for f in SCHEDULE_FIELDS) else None
    await _reload(context, params.task_name, force)

    return {
        "success": True,
        "task_id": task.id if task else None,
        "task_name": params.task_name,
        "updated_fields": updated_fields,
        "message": "Task updated and scheduler reloaded",
    }


TOOLS = [
    Tool(
        name="create_task_config",
        description=(
            "Create a new scheduled task that will run automatically via the scheduler. "
            "Use this when the operator asks to set up recurring monitoring, daily checks, "
            "or periodic reports."
        ),
        input_model=CreateTaskConfigInput,
        handler=create_task_config,
    ),
    Tool(
        name="update_task_config",
        description="Modify an existing scheduled task configuration.",
        input_model=UpdateTaskConfigInput,
        handler=update_task_config,
    ),
]
