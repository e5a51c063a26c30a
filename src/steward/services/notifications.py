"""Notification dispatcher: decides immediate email vs daily digest vs nothing."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from steward.db.models import (
    EscalationModel,
    QueueStatus,
    ReportModel,
)
from steward.db.repositories import (
    EscalationRepository,
    NotificationSettingsRepository,
    QueueRepository,
    ReportRepository,
)
from steward.services.email import EmailRenderer, EmailService

logger = logging.getLogger(__name__)

IMMEDIATE = "immediate"
DIGEST = "digest"
NONE = "none"

NOTIFICATION_RULES = {
    "escalation": {
        "critical": IMMEDIATE,
        "high": IMMEDIATE,
        "medium": DIGEST,
        "low": DIGEST,
    },
    "report": {
        "critical": IMMEDIATE,
        "warning": DIGEST,
        "info": NONE,
    },
}


@dataclass
class NotificationPreferences:
    email_enabled: bool = True
    digest_enabled: bool = True
    digest_time: str = "14:00"
    immediate_severities: list[str] = field(default_factory=lambda: ["critical", "high"])
    quiet_hours_start: str | None = None
    quiet_hours_end: str | None = None


def _minutes(hhmm: str) -> int:
    hours, minutes = hhmm.split(":")
    return int(hours) * 60 + int(minutes)


def is_quiet_hours(prefs: NotificationPreferences, now: datetime | None = None) -> bool:
    """Check whether `now` (UTC) falls inside the configured quiet hours.

    Both bounds are inclusive. A start later than the end wraps past midnight.
    """
    if not prefs.quiet_hours_start or not prefs.quiet_hours_end:
        return False
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    current = now.hour * 60 + now.minute
    start = _minutes(prefs.quiet_hours_start)
    end = _minutes(prefs.quiet_hours_end)
    if start > end:
        return current >= start or current <= end
    return start <= current <= end


def _severity(value: Any) -> str:
    return getattr(value, "value", value) or ""


def local_day_start(now: datetime | None = None) -> datetime:
    """Midnight of the current process-local day, expressed in UTC."""
    local_now = (now or datetime.now(timezone.utc)).astimezone()
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


class NotificationDispatcher:
    """Routes escalations, reports and task failures to email.

    Every notify_* method returns an outcome dict and never raises, so a
    notification problem cannot break the caller's own bookkeeping.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email: EmailService,
        renderer: EmailRenderer | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._email = email
        self._renderer = renderer or EmailRenderer()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_settings(self) -> NotificationPreferences:
        """Load the operator's preferences, falling back to defaults."""
        async with self._session_factory() as session:
            row = await NotificationSettingsRepository(session).get_first()
        if row is None:
            return NotificationPreferences()
        return NotificationPreferences(
            email_enabled=row.email_enabled,
            digest_enabled=row.digest_enabled,
            digest_time=row.digest_time,
            immediate_severities=list(row.immediate_severities or []),
            quiet_hours_start=row.quiet_hours_start,
            quiet_hours_end=row.quiet_hours_end,
        )

    async def should_send_immediate(self, severity: str) -> bool:
        prefs = await self.get_settings()
        if not prefs.email_enabled:
            return False
        if severity not in prefs.immediate_severities:
            return False
        if is_quiet_hours(prefs, self._clock()):
            logger.info(f"Quiet hours active - downgrading {severity} to digest")
            return False
        return True

    async def notify_escalation(self, escalation: EscalationModel) -> dict[str, Any]:
        try:
            severity = _severity(escalation.severity)
            action = NOTIFICATION_RULES["escalation"].get(severity, NONE)

            if action == IMMEDIATE:
                if not await self.should_send_immediate(severity):
                    action = DIGEST
                else:
                    email = self._renderer.escalation(
                        title=escalation.title,
                        description=escalation.description,
                        severity=severity,
                        source_task=escalation.source_task,
                        created_at=escalation.created_at,
                    )
                    result = await self._email.send_rendered(email)
                    logger.info(f'Escalation "{escalation.title}" ({severity}) -> immediate email')
                    return {"success": True, "action": IMMEDIATE, "email_result": result}

            logger.info(f'Escalation "{escalation.title}" ({severity}) -> {action}')
            return {"success": True, "action": action}
        except Exception as e:
            logger.exception(f"Error notifying escalation: {e}")
            return {"success": False, "error": str(e)}

    async def notify_report(self, report: ReportModel) -> dict[str, Any]:
        try:
            severity = _severity(report.severity) or "info"
            action = NOTIFICATION_RULES["report"].get(severity, NONE)
            label = report.task_name or report.report_type or "report"

            if action == IMMEDIATE:
                if not await self.should_send_immediate(severity):
                    action = DIGEST
                else:
                    email = self._renderer.escalation(
                        title=f"Critical Report: {label}",
                        description=report.summary or report.content[:500],
                        severity="critical",
                        source_task=label,
                        created_at=report.created_at,
                    )
                    result = await self._email.send_rendered(email)
                    logger.info(f'Report "{label}" ({severity}) -> immediate email')
                    return {"success": True, "action": IMMEDIATE, "email_result": result}

            logger.info(f'Report "{label}" ({severity}) -> {action}')
            return {"success": True, "action": action}
        except Exception as e:
            logger.exception(f"Error notifying report: {e}")
            return {"success": False, "error": str(e)}

    async def notify_task_failure(
        self, task_name: str, error: str, retry_count: int, max_retries: int
    ) -> dict[str, Any]:
        """Send the task failure email. Failures always go out immediately."""
        try:
            email = self._renderer.task_failure(
                task_name=task_name,
                error=error,
                retry_count=retry_count,
                max_retries=max_retries,
                failed_at=self._clock(),
            )
            result = await self._email.send_rendered(email)
            logger.info(f'Task failure notification sent: "{task_name}" ({retry_count}/{max_retries})')
            return {"success": True, "action": IMMEDIATE, "email_result": result}
        except Exception as e:
            logger.exception(f"Error notifying task failure: {e}")
            return {"success": False, "error": str(e)}

    async def send_daily_digest(self) -> dict[str, Any]:
        """Gather today's activity and email the digest.

        Raises:
            Any database or rendering error, so the caller can record the
            digest run as failed.
        """
        prefs = await self.get_settings()
        if not prefs.email_enabled or not prefs.digest_enabled:
            logger.info("Daily digest disabled in notification settings")
            return {"success": True, "action": NONE}

        now = self._clock()
        since = local_day_start(now)

        async with self._session_factory() as session:
            reports = await ReportRepository(session).list_since(since)
            escalations = await EscalationRepository(session).list_open(limit=50)
            queue = QueueRepository(session)
            pending = await queue.count(QueueStatus.PENDING)
            completed = await queue.count(QueueStatus.COMPLETED, completed_since=since)

        critical_open = [e for e in escalations if _severity(e.severity) == "critical"]
        if critical_open:
            health = f"{len(critical_open)} critical escalation(s) open - review needed."
        else:
            health = "All systems operational."

        email = self._renderer.daily_digest(
            date=now.astimezone().strftime("%B %d, %Y"),
            reports=reports,
            escalations=escalations,
            queue_pending=pending,
            queue_completed=completed,
            health_summary=health,
        )
        result = await self._email.send_rendered(email)
        logger.info(
            f"Daily digest processed: {len(reports)} report(s), {len(escalations)} open escalation(s)"
        )
        return {"success": True, "action": IMMEDIATE, "email_result": result}
