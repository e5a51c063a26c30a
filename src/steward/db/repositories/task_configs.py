"""Task config repository for database operations."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import RunStatus, TaskConfigModel


class TaskConfigRepository:
    """Repository for task config database operations.

    Status fields (last_run_*, consecutive_failures, enabled on breaker
    trip) are written only by the scheduler through the record_* methods.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        task_name: str,
        cron_schedule: str,
        prompt_template: str,
        model: str,
        description: str | None = None,
        enabled: bool = True,
        max_retries: int = 3,
    ) -> TaskConfigModel:
        """Create a new task config.

        Args:
            task_name: Unique lowercase identifier
            cron_schedule: 5-field cron expression, validated by the caller
            prompt_template: Text sent as the user turn on every run
            model: LLM model identifier
            description: Human readable description
            enabled: Whether the scheduler should register the task
            max_retries: Consecutive failures before the task is disabled

        Returns:
            The created TaskConfigModel
        """
        model_row = TaskConfigModel(
            task_name=task_name,
            description=description,
            cron_schedule=cron_schedule,
            prompt_template=prompt_template,
            model=model,
            enabled=enabled,
            max_retries=max_retries,
            consecutive_failures=0,
        )
        self.session.add(model_row)
        await self.session.flush()
        return model_row

    async def get_by_name(self, task_name: str) -> TaskConfigModel | None:
        """Get a task config by its unique name."""
        result = await self.session.execute(
            select(TaskConfigModel).where(TaskConfigModel.task_name == task_name)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[TaskConfigModel]:
        """Get all task configs ordered by name."""
        result = await self.session.execute(
            select(TaskConfigModel).order_by(TaskConfigModel.task_name.asc())
        )
        return list(result.scalars().all())

    async def list_enabled(self) -> list[TaskConfigModel]:
        """Get all enabled task configs."""
        result = await self.session.execute(
            select(TaskConfigModel)
            .where(TaskConfigModel.enabled.is_(True))
            .order_by(TaskConfigModel.task_name.asc())
        )
        return list(result.scalars().all())

    async def update(self, task_name: str, **values: Any) -> TaskConfigModel | None:
        """Update configuration fields of a task.

        None values are ignored, so callers can pass every optional field.

        Returns:
            Updated TaskConfigModel, or None if the task does not exist
        """
        update_values = {k: v for k, v in values.items() if v is not None}
        if not update_values:
            return await self.get_by_name(task_name)
        return await self._update(task_name, **update_values)

    async def record_success(self, task_name: str) -> TaskConfigModel | None:
        """Mark a successful run and reset the failure counter."""
        return await self._update(
            task_name,
            last_run_at=datetime.now(timezone.utc),
            last_run_status=RunStatus.SUCCESS,
            last_error=None,
            consecutive_failures=0,
        )

    async def record_skipped(self, task_name: str) -> TaskConfigModel | None:
        """Mark a run that was skipped by the circuit breaker."""
        return await self._update(
            task_name,
            last_run_at=datetime.now(timezone.utc),
            last_run_status=RunStatus.SKIPPED,
        )

    async def record_failure(
        self, task_name: str, error: str
    ) -> TaskConfigModel | None:
        """Atomically increment the failure counter and store the error.

        Returns:
            Updated TaskConfigModel carrying the new consecutive_failures
        """
        return await self._update(
            task_name,
            last_run_at=datetime.now(timezone.utc),
            last_run_status=RunStatus.ERROR,
            last_error=error,
            consecutive_failures=TaskConfigModel.consecutive_failures + 1,
        )

    async def record_run(
        self, task_name: str, status: RunStatus, error: str | None = None
    ) -> TaskConfigModel | None:
        """Record a run outcome without touching the failure counter."""
        values: dict[str, Any] = {
            "last_run_at": datetime.now(timezone.utc),
            "last_run_status": status,
        }
        if error is not None:
            values["last_error"] = error
        return await self._update(task_name, **values)

    async def disable(self, task_name: str) -> TaskConfigModel | None:
        """Disable a task so reconciliation unregisters its timer."""
        return await self._update(task_name, enabled=False)

    async def _update(self, task_name: str, **values: Any) -> TaskConfigModel | None:
        values["updated_at"] = datetime.now(timezone.utc)
        result = await self.session.execute(
            update(TaskConfigModel)
            .where(TaskConfigModel.task_name == task_name)
            .values(**values)
            .returning(TaskConfigModel)
            .execution_options(synchronize_session="fetch", populate_existing=True)
        )
        return result.scalar_one_or_none()
