"""Email delivery via the Resend HTTP API."""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

import httpx
from jinja2 import Environment, FileSystemLoader, StrictUndefined, select_autoescape

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

SEVERITY_COLORS = {
    "critical": "#EF4444",
    "high": "#F59E0B",
    "medium": "#6C8EEF",
    "low": "#8888A0",
    "warning": "#F59E0B",
    "info": "#6C8EEF",
}

SEVERITY_MARKERS = {
    "critical": "[CRITICAL]",
    "high": "[HIGH]",
    "medium": "[MEDIUM]",
    "low": "[LOW]",
}


@dataclass
class RenderedEmail:
    subject: str
    html: str
    text: str


def _format_time(value: datetime | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    return value.strftime("%b %d, %Y %H:%M %Z").strip()


def _truncate(value: str | None, length: int) -> str:
    value = value or ""
    return value if len(value) <= length else value[:length] + "..."


def _value(severity: Any) -> str:
    return getattr(severity, "value", severity)


class EmailRenderer:
    """Renders the notification templates shipped in ``steward/templates``."""

    def __init__(self, templates_dir: Path | None = None, app_name: str = "Steward") -> None:
        loader = FileSystemLoader(str(templates_dir or TEMPLATES_DIR))
        self.app_name = app_name
        self._html = Environment(
            loader=loader,
            autoescape=select_autoescape(["html"]),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self._text = Environment(
            loader=loader,
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        for env in (self._html, self._text):
            env.filters["timestamp"] = _format_time
            env.filters["truncate_chars"] = _truncate

    def _render(self, name: str, subject: str, **data: Any) -> RenderedEmail:
        data["app_name"] = self.app_name
        return RenderedEmail(
            subject=subject,
            html=self._html.get_template(f"{name}.html").render(**data),
            text=self._text.get_template(f"{name}.txt").render(**data).strip() + "\n",
        )

    def escalation(
        self,
        title: str,
        description: str,
        severity: str,
        source_task: str | None = None,
        created_at: datetime | None = None,
    ) -> RenderedEmail:
        marker = SEVERITY_MARKERS.get(severity, "[NOTICE]")
        return self._render(
            "escalation",
            subject=f"{marker} {self.app_name}: {title}",
            title=title,
            description=description,
            severity=severity,
            color=SEVERITY_COLORS.get(severity, SEVERITY_COLORS["medium"]),
            source_task=source_task,
            created_at=created_at,
        )

    def task_failure(
        self,
        task_name: str,
        error: str,
        retry_count: int,
        max_retries: int,
        failed_at: datetime,
    ) -> RenderedEmail:
        is_permanent = retry_count >= max_retries
        if is_permanent:
            subject = f'{self.app_name}: Task "{task_name}" permanently failed'
        else:
            subject = f'{self.app_name}: Task "{task_name}" failed'
        return self._render(
            "task_failure",
            subject=subject,
            task_name=task_name,
            error=error,
            retry_count=retry_count,
            max_retries=max_retries,
            retries_left=max(max_retries - retry_count, 0),
            failed_at=failed_at,
            is_permanent=is_permanent,
        )

    def daily_digest(
        self,
        date: str,
        reports: list[Any],
        escalations: list[Any],
        queue_pending: int,
        queue_completed: int,
        health_summary: str,
    ) -> RenderedEmail:
        report_rows = [
            {
                "name": r.task_name or r.report_type or "ad hoc",
                "severity": _value(r.severity),
                "summary": r.summary or "",
            }
            for r in reports
        ]
        escalation_rows = [
            {
                "title": e.title,
                "severity": _value(e.severity),
                "description": e.description or "",
                "acknowledged": e.acknowledged,
            }
            for e in escalations
        ]
        critical_items = [
            {"title": r["name"], "detail": r["summary"]}
            for r in report_rows
            if r["severity"] == "critical"
        ] + [
            {"title": e["title"], "detail": e["description"]}
            for e in escalation_rows
            if e["severity"] == "critical"
        ]
        unacknowledged = [e for e in escalation_rows if not e["acknowledged"]]
        return self._render(
            "daily_digest",
            subject=f"{self.app_name} Daily Brief - {date}",
            date=date,
            reports=report_rows,
            critical_items=critical_items,
            unacknowledged=unacknowledged,
            open_count=len([e for e in escalations if not e.resolved]),
            queue_pending=queue_pending,
            queue_completed=queue_completed,
            health_summary=health_summary,
            colors=SEVERITY_COLORS,
        )


class EmailService:
    """Sends email to the operator through Resend.

    Delivery problems are reported in the returned dict, never raised.
    """

    def __init__(
        self,
        api_key: str | None,
        from_email: str,
        to_email: str,
        from_name: str = "Steward",
        api_url: str = "https://api.resend.com/emails",
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = api_key
        self.from_email = from_email
        self.from_name = from_name
        self.to_email = to_email
        self.api_url = api_url
        self.timeout = timeout
        self._client = client

    async def send(self, subject: str, html: str, text: str) -> dict[str, Any]:
        """Send one email.

        Returns:
            {"success": True, "id": ...} or {"success": False, "reason": ...}
        """
        if not self.api_key:
            logger.info(f"Email skipped (no API key configured): {subject}")
            return {"success": False, "reason": "no_api_key"}

        payload = {
            "from": f"{self.from_name} <{self.from_email}>",
            "to": [self.to_email],
            "subject": subject,
            "html": html,
            "text": text,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(self.api_url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.api_url, json=payload, headers=headers)
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Email API error: {e}")
            return {"success": False, "reason": "send_error", "error": str(e)}
        except (httpx.RequestError, ValueError) as e:
            logger.error(f"Email send error: {e}")
            return {"success": False, "reason": "send_error", "error": str(e)}

        logger.info(f'Email sent: "{subject}" -> {self.to_email}')
        return {"success": True, "id": body.get("id")}

    async def send_rendered(self, email: RenderedEmail) -> dict[str, Any]:
        return await self.send(email.subject, email.html, email.text)
