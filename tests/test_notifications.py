"""Tests for the notification dispatcher."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from steward.db.models import EscalationSeverity, ReportSeverity
from steward.db.repositories import (
    EscalationRepository,
    NotificationSettingsRepository,
    ReportRepository,
)
from steward.services.notifications import (
    DIGEST,
    IMMEDIATE,
    NONE,
    NotificationDispatcher,
    NotificationPreferences,
    is_quiet_hours,
)

NOON_UTC = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def at(hour, minute=0):
    return datetime(2026, 3, 1, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def email():
    service = MagicMock()
    service.send_rendered = AsyncMock(return_value={"success": True, "id": "email_1"})
    return service


@pytest.fixture
def dispatcher(session_factory, email):
    return NotificationDispatcher(session_factory, email, clock=lambda: NOON_UTC)


async def save_settings(session_factory, **values):
    async with session_factory() as session:
        await NotificationSettingsRepository(session).upsert("ops@example.com", **values)
        await session.commit()


async def make_escalation(session_factory, severity):
    async with session_factory() as session:
        row = await EscalationRepository(session).create("Title", "Desc", severity)
        await session.commit()
        return row


async def make_report(session_factory, severity, **kwargs):
    async with session_factory() as session:
        row = await ReportRepository(session).create(
            content="Body", task_name="daily_briefing", summary="Sum", severity=severity, **kwargs
        )
        await session.commit()
        return row


class TestQuietHours:
    def test_disabled_without_bounds(self):
        assert is_quiet_hours(NotificationPreferences(), at(3)) is False

    def test_same_day_window_inclusive(self):
        prefs = NotificationPreferences(quiet_hours_start="04:00", quiet_hours_end="13:00")
        assert is_quiet_hours(prefs, at(4)) is True
        assert is_quiet_hours(prefs, at(13)) is True
        assert is_quiet_hours(prefs, at(13, 1)) is False
        assert is_quiet_hours(prefs, at(3, 59)) is False

    def test_overnight_window(self):
        prefs = NotificationPreferences(quiet_hours_start="22:00", quiet_hours_end="06:00")
        assert is_quiet_hours(prefs, at(23)) is True
        assert is_quiet_hours(prefs, at(2)) is True
        assert is_quiet_hours(prefs, at(6)) is True
        assert is_quiet_hours(prefs, at(12)) is False


class TestEscalationRouting:
    @pytest.mark.parametrize(
        "severity, action",
        [
            (EscalationSeverity.CRITICAL, IMMEDIATE),
            (EscalationSeverity.HIGH, IMMEDIATE),
            (EscalationSeverity.MEDIUM, DIGEST),
            (EscalationSeverity.LOW, DIGEST),
        ],
    )
    async def test_default_rules(self, dispatcher, session_factory, email, severity, action):
        escalation = await make_escalation(session_factory, severity)

        result = await dispatcher.notify_escalation(escalation)

        assert result["success"] is True
        assert result["action"] == action
        assert email.send_rendered.await_count == (1 if action == IMMEDIATE else 0)

    async def test_quiet_hours_downgrade(self, dispatcher, session_factory, email):
        await save_settings(session_factory, quiet_hours_start="11:00", quiet_hours_end="13:00")
        escalation = await make_escalation(session_factory, EscalationSeverity.CRITICAL)

        result = await dispatcher.notify_escalation(escalation)

        assert result["action"] == DIGEST
        email.send_rendered.assert_not_awaited()

    async def test_severity_not_in_immediate_list(self, dispatcher, session_factory, email):
        await save_settings(session_factory, immediate_severities=["critical"])
        escalation = await make_escalation(session_factory, EscalationSeverity.HIGH)

        assert (await dispatcher.notify_escalation(escalation))["action"] == DIGEST

    async def test_email_disabled(self, dispatcher, session_factory, email):
        await save_settings(session_factory, email_enabled=False)
        escalation = await make_escalation(session_factory, EscalationSeverity.CRITICAL)

        assert (await dispatcher.notify_escalation(escalation))["action"] == DIGEST
        email.send_rendered.assert_not_awaited()

    async def test_errors_are_swallowed(self, dispatcher, session_factory, email):
        email.send_rendered.side_effect = RuntimeError("smtp on fire")
        escalation = await make_escalation(session_factory, EscalationSeverity.CRITICAL)

        result = await dispatcher.notify_escalation(escalation)

        assert result == {"success": False, "error": "smtp on fire"}


class TestReportRouting:
    @pytest.mark.parametrize(
        "severity, action",
        [
            (ReportSeverity.CRITICAL, IMMEDIATE),
            (ReportSeverity.WARNING, DIGEST),
            (ReportSeverity.INFO, NONE),
        ],
    )
    async def test_rules(self, dispatcher, session_factory, severity, action):
        report = await make_report(session_factory, severity)
        assert (await dispatcher.notify_report(report))["action"] == action


class TestTaskFailure:
    async def test_always_immediate(self, dispatcher, email):
        result = await dispatcher.notify_task_failure("daily_briefing", "boom", 1, 3)

        assert result["action"] == IMMEDIATE
        (sent,) = email.send_rendered.await_args.args
        assert sent.subject == 'Steward: Task "daily_briefing" failed'


class TestDailyDigest:
    async def test_sends_digest(self, dispatcher, session_factory, email):
        await make_report(session_factory, ReportSeverity.INFO)
        await make_escalation(session_factory, EscalationSeverity.CRITICAL)
        clock_now = datetime.now(timezone.utc)
        dispatcher._clock = lambda: clock_now

        result = await dispatcher.send_daily_digest()

        assert result["action"] == IMMEDIATE
        (sent,) = email.send_rendered.await_args.args
        assert "1 critical escalation(s) open - review needed." in sent.text
        assert "daily_briefing [INFO]" in sent.text

    async def test_digest_disabled(self, dispatcher, session_factory, email):
        await save_settings(session_factory, digest_enabled=False)

        assert await dispatcher.send_daily_digest() == {"success": True, "action": NONE}
        email.send_rendered.assert_not_awaited()
