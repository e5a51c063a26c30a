"""Scheduler service for cron-driven model tasks."""

import asyncio
import contextlib
import functools
import logging
import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from steward.db.models import EscalationSeverity, ReportSeverity, RunStatus
from steward.db.repositories import (
    EscalationRepository,
    MemoryRepository,
    ReportRepository,
    TaskConfigRepository,
)
from steward.models.task_config import TaskConfig
from steward.services.conversation import ConversationLoop
from steward.services.cron import CronTimer, TimerRegistry, validate_cron
from steward.services.notifications import local_day_start
from steward.services.prompts import build_task_system_prompt
from steward.tools import SCHEDULED_TASK_TOOLS, ToolContext

if TYPE_CHECKING:
    from steward.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

SUMMARY_MAX_LENGTH = 500
_SENTENCE_BREAK = re.compile(r"[.!?]\s+")

CRITICAL_KEYWORDS = ("critical", "urgent", "error")
WARNING_KEYWORDS = ("warning", "attention", "anomaly")

SeverityClassifier = Callable[[str], ReportSeverity]


class TaskNotFoundError(LookupError):
    """Raised when a task name does not exist in the store."""


def summarize(content: str) -> str:
    """First two sentences of the answer, capped at 500 characters."""
    sentences = _SENTENCE_BREAK.split(content)
    summary = ". ".join(sentences[:2])
    if len(sentences) > 2:
        summary += "."
    return summary[:SUMMARY_MAX_LENGTH]


def classify_severity(content: str) -> ReportSeverity:
    """Keyword heuristic over the lowercased answer."""
    lowered = content.lower()
    if any(word in lowered for word in CRITICAL_KEYWORDS):
        return ReportSeverity.CRITICAL
    if any(word in lowered for word in WARNING_KEYWORDS):
        return ReportSeverity.WARNING
    return ReportSeverity.INFO


def breaker_escalation_text(task_name: str, max_retries: int, error: str) -> tuple[str, str]:
    title = f"Scheduled task disabled: {task_name}"
    description = (
        f'The scheduled task "{task_name}" has failed {max_retries} times consecutively '
        "and has been automatically disabled.\n\n"
        f"Last error: {error}\n\n"
        "This requires investigation and manual re-enable after the issue is resolved."
    )
    return title, description


class SchedulerService:
    """Keeps cron timers in sync with the task config table and runs tasks.

    Each enabled task gets one timer bound to a snapshot of its row. Timers
    are added and removed by reconciliation passes; a timer that is already
    registered keeps its snapshot until the task is disabled, or until a
    reload explicitly forces it to be rebuilt.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        conversation: ConversationLoop,
        timers: TimerRegistry,
        notifier: "NotificationDispatcher | None" = None,
        reload_interval: int = 300,
        digest_task_name: str = "daily_digest_email",
        classify: SeverityClassifier = classify_severity,
        tool_names: list[str] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._conversation = conversation
        self._timers = timers
        self._notifier = notifier
        self._reload_interval = reload_interval
        self._digest_task_name = digest_task_name
        self._classify = classify
        self._tool_names = tool_names or list(SCHEDULED_TASK_TOOLS)
        self._snapshots: dict[str, TaskConfig] = {}
        self._in_flight: set[str] = set()
        self._executions: set[asyncio.Task[None]] = set()
        self._lock = asyncio.Lock()
        self._reconcile_task: asyncio.Task[None] | None = None
        self._running = False
        self._stopping = False

    @property
    def running(self) -> bool:
        return self._running

    def registered_tasks(self) -> dict[str, TaskConfig]:
        """Snapshots of every task that currently has a timer."""
        return {name: self._snapshots[name] for name in self._timers.names()}

    def in_flight(self) -> set[str]:
        return set(self._in_flight)

    async def start(self) -> None:
        """Register timers for enabled tasks and start periodic reconciliation."""
        self._stopping = False
        await self.reload()
        self._running = True
        self._reconcile_task = asyncio.create_task(self._reconcile_loop())
        logger.info("Scheduler service started")

    async def stop(self) -> None:
        """Stop all timers, then wait for running executions to finish."""
        self._stopping = True
        self._running = False
        stopped = self._timers.stop_all()
        self._snapshots.clear()
        for name in stopped:
            logger.info(f"Stopped timer for task: {name}")

        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reconcile_task
            self._reconcile_task = None

        if self._executions:
            logger.info(f"Waiting for {len(self._executions)} running task(s) to finish")
            await asyncio.gather(*list(self._executions), return_exceptions=True)
        logger.info("Scheduler service stopped")

    async def _reconcile_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._reload_interval)
            try:
                await self.reload()
            except Exception as e:
                logger.exception(f"Scheduler reload error: {e}")

    async def reload(self, force: list[str] | None = None) -> dict[str, list[str]]:
        """Reconcile timers with the enabled rows in the store.

        Args:
            force: Task names whose timers are rebuilt from their current
                row even if already registered.

        Returns:
            Names that were registered, removed, and are now active.
        """
        async with self._lock:
            async with self._session_factory() as session:
                rows = await TaskConfigRepository(session).list_enabled()
            enabled = {row.task_name: TaskConfig.from_model(row) for row in rows}
            logger.info(f"Loaded {len(enabled)} enabled task(s)")

            removed = []
            for name in self._timers.names():
                if name not in enabled:
                    logger.info(f"Unregistering removed or disabled task: {name}")
                    self._timers.remove(name)
                    self._snapshots.pop(name, None)
                    removed.append(name)

            forced = set(force or [])
            registered = []
            for name, task in enabled.items():
                if name in self._timers and name not in forced:
                    continue
                if not validate_cron(task.cron_schedule):
                    logger.error(f"Invalid cron schedule for {name}: {task.cron_schedule}")
                    if name in self._timers:
                        self._timers.remove(name)
                        self._snapshots.pop(name, None)
                    continue
                logger.info(f"Registering task: {name} (schedule: {task.cron_schedule})")
                self._register(task)
                registered.append(name)

            logger.info(f"{len(self._timers)} task(s) scheduled")
            return {"registered": registered, "removed": removed, "active": self._timers.names()}

    def _register(self, task: TaskConfig) -> None:
        timer = CronTimer(task.task_name, task.cron_schedule, functools.partial(self._fire, task))
        self._snapshots[task.task_name] = task
        self._timers.add(timer)

    def _fire(self, task: TaskConfig) -> asyncio.Task[None] | None:
        """Start one execution unless the task is already running."""
        name = task.task_name
        if self._stopping:
            logger.info(f"Scheduler stopping, not starting {name}")
            return None
        if name in self._in_flight:
            logger.warning(f"Task {name} is still running, skipping this firing")
            return None

        self._in_flight.add(name)
        execution = asyncio.create_task(self._run_guarded(task), name=f"task:{name}")
        self._executions.add(execution)
        execution.add_done_callback(self._executions.discard)
        return execution

    async def _run_guarded(self, task: TaskConfig) -> None:
        try:
            await self.execute_task(task)
        except Exception as e:
            logger.exception(f"Unhandled error in task {task.task_name}: {e}")
        finally:
            self._in_flight.discard(task.task_name)

    async def trigger(self, task_name: str) -> asyncio.Task[None] | None:
        """Manually run a stored task now.

        Returns:
            The execution task, or None if the task is already running.

        Raises:
            TaskNotFoundError: If no task with that name exists.
        """
        async with self._session_factory() as session:
            row = await TaskConfigRepository(session).get_by_name(task_name)
        if row is None:
            raise TaskNotFoundError(task_name)
        logger.info(f"Manually triggering task: {task_name}")
        return self._fire(TaskConfig.from_model(row))

    async def execute_task(self, task: TaskConfig) -> str:
        """Run one execution of a task.

        Returns:
            "success", "error", "skipped", "duplicate" or "missing"
        """
        name = task.task_name
        logger.info(f"Executing task: {name}")

        if name == self._digest_task_name:
            return await self._run_digest(name)

        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            repo = TaskConfigRepository(session)
            current = await repo.get_by_name(name)
            if current is None:
                logger.warning(f"Task {name} no longer exists, skipping")
                return "missing"

            if current.consecutive_failures >= current.max_retries:
                logger.warning(
                    f"Task {name} has hit max retries ({current.max_retries}). Skipping."
                )
                await repo.record_skipped(name)
                await session.commit()
                return RunStatus.SKIPPED.value

            reports = ReportRepository(session)
            if await reports.exists_for_task_since(name, local_day_start(now)):
                logger.info(f"Report already exists for {name} today. Skipping.")
                return "duplicate"

            last_report = await reports.get_latest_for_task(name)
            persona = await MemoryRepository(session).persona_parameters()

        task_context = f"Current Date: {now.isoformat()}\n"
        if last_report is not None:
            task_context += (
                f"\nLast Report ({last_report.created_at:%Y-%m-%d}):\n{last_report.content}\n"
            )

        try:
            result = await self._conversation.run(
                system_prompt=build_task_system_prompt(persona, task_context),
                messages=[{"role": "user", "content": task.prompt_template}],
                context=ToolContext(
                    session_factory=self._session_factory,
                    task_name=name,
                    notifier=self._notifier,
                ),
                tool_names=self._tool_names,
                model=task.model,
                label=name,
            )
            severity = self._classify(result.content)
            async with self._session_factory() as session:
                report = await ReportRepository(session).create(
                    content=result.content,
                    task_name=name,
                    summary=summarize(result.content),
                    severity=severity,
                    model_used=result.model,
                    tokens_in=result.tokens_in,
                    tokens_out=result.tokens_out,
                    cost_estimate=result.cost,
                    metadata={"rounds": result.rounds, "hit_round_limit": result.hit_round_limit},
                )
                await session.commit()
        except Exception as e:
            await self._record_failure(name, e)
            return RunStatus.ERROR.value

        logger.info(f"Task {name} completed successfully. Severity: {severity.value}")

        if self._notifier is not None:
            try:
                await self._notifier.notify_report(report)
            except Exception as e:
                logger.error(f"Notification failed for {name} (report still saved): {e}")

        async with self._session_factory() as session:
            await TaskConfigRepository(session).record_success(name)
            await session.commit()
        return RunStatus.SUCCESS.value

    async def _record_failure(self, name: str, exc: Exception) -> None:
        error = str(exc) or type(exc).__name__
        logger.error(f"Task {name} failed: {error}")

        async with self._session_factory() as session:
            repo = TaskConfigRepository(session)
            updated = await repo.record_failure(name, error)
            if updated is None:
                await session.commit()
                return
            failures = updated.consecutive_failures
            max_retries = updated.max_retries
            tripped = failures >= max_retries
            if tripped:
                logger.error(f"Task {name} hit max retries ({max_retries}). Disabling task.")
                await repo.disable(name)
                title, description = breaker_escalation_text(name, max_retries, error)
                await EscalationRepository(session).create(
                    title=title,
                    description=description,
                    severity=EscalationSeverity.CRITICAL,
                    source_task=name,
                    category="scheduler",
                )
            await session.commit()

        if tripped:
            logger.info(f"Critical escalation created for disabled task: {name}")

        if self._notifier is not None:
            try:
                await self._notifier.notify_task_failure(name, error, failures, max_retries)
            except Exception as e:
                logger.error(f"Failure notification failed for {name}: {e}")

    async def _run_digest(self, name: str) -> str:
        try:
            if self._notifier is None:
                raise RuntimeError("No notification dispatcher configured")
            await self._notifier.send_daily_digest()
        except Exception as e:
            logger.exception(f"Daily digest failed: {e}")
            async with self._session_factory() as session:
                await TaskConfigRepository(session).record_run(
                    name, RunStatus.ERROR, error=str(e) or type(e).__name__
                )
                await session.commit()
            return RunStatus.ERROR.value

        async with self._session_factory() as session:
            await TaskConfigRepository(session).record_run(name, RunStatus.SUCCESS)
            await session.commit()
        return RunStatus.SUCCESS.value

    async def list_tasks(self) -> list[dict[str, Any]]:
        """Every stored task with whether it currently has a timer."""
        async with self._session_factory() as session:
            rows = await TaskConfigRepository(session).list_all()
        return [
            {"task": TaskConfig.from_model(row), "registered": row.task_name in self._timers}
            for row in rows
        ]
