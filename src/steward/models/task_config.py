"""Task config snapshot used by the scheduler."""

from dataclasses import dataclass
from datetime import datetime

from steward.db.models import TaskConfigModel


@dataclass(frozen=True)
class TaskConfig:
    """A recurring task as it was when its timer was registered.

    Prompt and model are taken from the snapshot; retry counters are
    re-read from the store on every execution.
    """

    task_id: str
    task_name: str
    cron_schedule: str
    prompt_template: str
    model: str
    description: str | None = None
    enabled: bool = True
    max_retries: int = 3
    consecutive_failures: int = 0
    last_run_at: datetime | None = None
    last_run_status: str | None = None
    last_error: str | None = None

    @classmethod
    def from_model(cls, model: TaskConfigModel) -> "TaskConfig":
        return cls(
            task_id=model.id,
            task_name=model.task_name,
            cron_schedule=model.cron_schedule,
            prompt_template=model.prompt_template,
            model=model.model,
            description=model.description,
            enabled=model.enabled,
            max_retries=model.max_retries,
            consecutive_failures=model.consecutive_failures,
            last_run_at=model.last_run_at,
            last_run_status=(
                model.last_run_status.value if model.last_run_status is not None else None
            ),
            last_error=model.last_error,
        )
