"""Tests for the SchedulerService."""

import asyncio

import pytest

from steward.db.models import EscalationSeverity, ReportSeverity, RunStatus
from steward.db.repositories import (
    EscalationRepository,
    MemoryRepository,
    ReportRepository,
    TaskConfigRepository,
)
from steward.models.task_config import TaskConfig
from steward.services.conversation import ConversationLoop
from steward.services.cron import TimerRegistry
from steward.services.scheduler import (
    SchedulerService,
    TaskNotFoundError,
    classify_severity,
    summarize,
)


@pytest.fixture
def timers():
    return TimerRegistry()


@pytest.fixture
async def scheduler(session_factory, mock_client, tool_registry, timers, mock_notifier):
    """Create a SchedulerService wired to the in-memory database."""
    sched = SchedulerService(
        session_factory,
        ConversationLoop(mock_client, tool_registry),
        timers,
        notifier=mock_notifier,
        reload_interval=3600,
    )
    yield sched
    await sched.stop()


async def create_task(session_factory, name="daily_briefing", cron="0 13 * * *", **kwargs):
    async with session_factory() as session:
        row = await TaskConfigRepository(session).create(
            task_name=name,
            cron_schedule=cron,
            prompt_template=kwargs.pop("prompt", "Summarize yesterday's activity"),
            model=kwargs.pop("model", "claude-sonnet-4-5-20250929"),
            **kwargs,
        )
        await session.commit()
        return TaskConfig.from_model(row)


async def get_task(session_factory, name="daily_briefing"):
    async with session_factory() as session:
        return await TaskConfigRepository(session).get_by_name(name)


class TestHelpers:
    def test_summarize_two_sentences(self):
        content = "Signups up. Churn flat! Revenue steady? Nothing else."
        assert summarize(content) == "Signups up. Churn flat."

    def test_summarize_short(self):
        assert summarize("One line only") == "One line only"

    def test_summarize_capped(self):
        assert len(summarize("x" * 2000)) == 500

    @pytest.mark.parametrize(
        "content, expected",
        [
            ("URGENT: payments failing", ReportSeverity.CRITICAL),
            ("Saw an error in the logs", ReportSeverity.CRITICAL),
            ("Minor anomaly in signups", ReportSeverity.WARNING),
            ("Needs attention soon", ReportSeverity.WARNING),
            ("All quiet.", ReportSeverity.INFO),
        ],
    )
    def test_classify_severity(self, content, expected):
        assert classify_severity(content) == expected


class TestExecuteTask:
    async def test_success_writes_report(self, scheduler, session_factory, mock_client, replies, mock_notifier):
        task = await create_task(session_factory)
        mock_client.generate.side_effect = [replies.text("Minor anomaly in signups. Otherwise fine.", 1000, 200)]

        status = await scheduler.execute_task(task)

        assert status == "success"
        async with session_factory() as session:
            report = await ReportRepository(session).get_latest_for_task("daily_briefing")
        assert report.severity == ReportSeverity.WARNING
        assert report.summary == "Minor anomaly in signups. Otherwise fine."
        assert report.tokens_in == 1000
        assert report.tokens_out == 200
        assert report.cost_estimate == pytest.approx(0.006)
        assert report.model_used == "claude-sonnet-4-5-20250929"
        assert report.metadata_ == {"rounds": 1, "hit_round_limit": False}
        mock_notifier.notify_report.assert_awaited_once()

        row = await get_task(session_factory)
        assert row.last_run_status == RunStatus.SUCCESS
        assert row.consecutive_failures == 0

    async def test_uses_scheduled_tool_subset_and_prompt(self, scheduler, session_factory, mock_client):
        task = await create_task(session_factory, prompt="Check the funnel")
        async with session_factory() as session:
            await MemoryRepository(session).upsert("persona_tone", "dry", "persona")
            await session.commit()

        await scheduler.execute_task(task)

        kwargs = mock_client.generate.await_args.kwargs
        assert [t["name"] for t in kwargs["tools"]] == ["execute_sql", "update_memory", "create_escalation"]
        assert kwargs["transcript"][0] == {"role": "user", "content": "Check the funnel"}
        assert "- tone: \"dry\"" in kwargs["system_prompt"]
        assert "Current Date:" in kwargs["system_prompt"]

    async def test_failure_counter_is_capped_at_max_retries(
        self, scheduler, session_factory, mock_client, mock_notifier
    ):
        task = await create_task(session_factory, max_retries=3)
        mock_client.generate.side_effect = RuntimeError("provider down")

        statuses = [await scheduler.execute_task(task) for _ in range(5)]

        assert statuses == ["error", "error", "error", "skipped", "skipped"]
        row = await get_task(session_factory)
        assert row.consecutive_failures == 3
        assert row.enabled is False
        assert row.last_run_status == RunStatus.SKIPPED
        assert row.last_error == "provider down"
        assert mock_client.generate.await_count == 3
        assert mock_notifier.notify_task_failure.await_count == 3
        mock_notifier.notify_task_failure.assert_awaited_with("daily_briefing", "provider down", 3, 3)

    async def test_breaker_creates_exactly_one_escalation(self, scheduler, session_factory, mock_client):
        task = await create_task(session_factory, max_retries=2)
        mock_client.generate.side_effect = RuntimeError("boom")

        for _ in range(4):
            await scheduler.execute_task(task)

        async with session_factory() as session:
            escalations = await EscalationRepository(session).list_for_source("daily_briefing")
        assert len(escalations) == 1
        assert escalations[0].severity == EscalationSeverity.CRITICAL
        assert escalations[0].title == "Scheduled task disabled: daily_briefing"
        assert "failed 2 times consecutively" in escalations[0].description
        assert "Last error: boom" in escalations[0].description

    async def test_success_resets_counter(self, scheduler, session_factory, mock_client, replies):
        task = await create_task(session_factory)
        mock_client.generate.side_effect = [RuntimeError("a"), RuntimeError("b"), replies.text("ok")]

        await scheduler.execute_task(task)
        await scheduler.execute_task(task)
        assert (await get_task(session_factory)).consecutive_failures == 2

        assert await scheduler.execute_task(task) == "success"
        row = await get_task(session_factory)
        assert row.consecutive_failures == 0
        assert row.last_error is None

    async def test_same_day_dedup(self, scheduler, session_factory, mock_client):
        task = await create_task(session_factory)

        assert await scheduler.execute_task(task) == "success"
        before = await get_task(session_factory)

        assert await scheduler.execute_task(task) == "duplicate"
        after = await get_task(session_factory)

        assert mock_client.generate.await_count == 1
        assert after.last_run_at == before.last_run_at
        async with session_factory() as session:
            assert len(await ReportRepository(session).list_recent(limit=10)) == 1

    async def test_notification_failure_keeps_report(
        self, scheduler, session_factory, mock_notifier
    ):
        task = await create_task(session_factory)
        mock_notifier.notify_report.side_effect = RuntimeError("mail down")

        assert await scheduler.execute_task(task) == "success"
        assert (await get_task(session_factory)).last_run_status == RunStatus.SUCCESS

    async def test_missing_task(self, scheduler, session_factory):
        task = await create_task(session_factory)
        async with session_factory() as session:
            row = await TaskConfigRepository(session).get_by_name(task.task_name)
            await session.delete(row)
            await session.commit()

        assert await scheduler.execute_task(task) == "missing"

    async def test_digest_task(self, scheduler, session_factory, mock_client, mock_notifier):
        task = await create_task(session_factory, name="daily_digest_email", cron="0 14 * * *")

        assert await scheduler.execute_task(task) == "success"

        mock_notifier.send_daily_digest.assert_awaited_once()
        mock_client.generate.assert_not_awaited()
        row = await get_task(session_factory, "daily_digest_email")
        assert row.last_run_status == RunStatus.SUCCESS

    async def test_digest_failure_leaves_counter(self, scheduler, session_factory, mock_notifier):
        task = await create_task(session_factory, name="daily_digest_email", cron="0 14 * * *")
        mock_notifier.send_daily_digest.side_effect = RuntimeError("resend down")

        assert await scheduler.execute_task(task) == "error"
        row = await get_task(session_factory, "daily_digest_email")
        assert row.last_run_status == RunStatus.ERROR
        assert row.last_error == "resend down"
        assert row.consecutive_failures == 0


class TestReload:
    async def test_registers_enabled_tasks(self, scheduler, session_factory, timers):
        await create_task(session_factory, "alpha")
        await create_task(session_factory, "beta", enabled=False)

        result = await scheduler.reload()

        assert result == {"registered": ["alpha"], "removed": [], "active": ["alpha"]}
        assert "alpha" in timers
        assert "beta" not in timers

    async def test_removes_disabled_tasks(self, scheduler, session_factory, timers):
        await create_task(session_factory, "alpha")
        await scheduler.reload()
        timer = timers.get("alpha")

        async with session_factory() as session:
            await TaskConfigRepository(session).disable("alpha")
            await session.commit()
        result = await scheduler.reload()

        assert result["removed"] == ["alpha"]
        assert timer.stopped is True
        assert len(timers) == 0

    async def test_registered_timer_keeps_snapshot_unless_forced(self, scheduler, session_factory, timers):
        await create_task(session_factory, "alpha", cron="0 13 * * *")
        await scheduler.reload()
        original = timers.get("alpha")

        async with session_factory() as session:
            await TaskConfigRepository(session).update("alpha", cron_schedule="30 9 * * *")
            await session.commit()

        assert (await scheduler.reload())["registered"] == []
        assert timers.get("alpha") is original
        assert scheduler.registered_tasks()["alpha"].cron_schedule == "0 13 * * *"

        result = await scheduler.reload(force=["alpha"])
        assert result["registered"] == ["alpha"]
        assert original.stopped is True
        assert timers.get("alpha").expression == "30 9 * * *"
        assert scheduler.registered_tasks()["alpha"].cron_schedule == "30 9 * * *"

    async def test_invalid_cron_not_registered(self, scheduler, session_factory, timers):
        await create_task(session_factory, "broken", cron="99 99 * * *")
        await create_task(session_factory, "fine")

        result = await scheduler.reload()

        assert result["active"] == ["fine"]

    async def test_start_and_stop(self, scheduler, session_factory, timers):
        await create_task(session_factory, "alpha")

        await scheduler.start()
        assert scheduler.running is True
        assert "alpha" in timers

        await scheduler.stop()
        assert scheduler.running is False
        assert len(timers) == 0


class TestTrigger:
    async def test_unknown_task(self, scheduler):
        with pytest.raises(TaskNotFoundError):
            await scheduler.trigger("ghost")

    async def test_in_flight_guard(self, scheduler, session_factory, mock_client, replies):
        await create_task(session_factory)
        release = asyncio.Event()

        async def slow_generate(**kwargs):
            await release.wait()
            return replies.text("done")

        mock_client.generate.side_effect = slow_generate

        first = await scheduler.trigger("daily_briefing")
        await asyncio.sleep(0)
        second = await scheduler.trigger("daily_briefing")

        assert first is not None
        assert second is None
        assert scheduler.in_flight() == {"daily_briefing"}

        release.set()
        await first
        assert scheduler.in_flight() == set()
        assert mock_client.generate.await_count == 1

    async def test_stop_waits_for_running_execution(self, scheduler, session_factory, mock_client, replies):
        await create_task(session_factory)
        release = asyncio.Event()

        async def slow_generate(**kwargs):
            await release.wait()
            return replies.text("done")

        mock_client.generate.side_effect = slow_generate
        execution = await scheduler.trigger("daily_briefing")
        await asyncio.sleep(0)

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0)
        assert not stopping.done()

        release.set()
        await stopping
        assert execution.done()
        assert (await get_task(session_factory)).last_run_status == RunStatus.SUCCESS
        assert await scheduler.trigger("daily_briefing") is None

    async def test_list_tasks(self, scheduler, session_factory):
        await create_task(session_factory, "alpha")
        await create_task(session_factory, "beta", enabled=False)
        await scheduler.reload()

        entries = await scheduler.list_tasks()

        assert [(e["task"].task_name, e["registered"]) for e in entries] == [
            ("alpha", True),
            ("beta", False),
        ]
