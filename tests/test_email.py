"""Tests for email rendering and the Resend sender."""

import json
from datetime import datetime, timezone
from types import SimpleNamespace

import httpx
import pytest

from steward.services.email import EmailRenderer, EmailService


@pytest.fixture
def renderer():
    return EmailRenderer(app_name="Steward")


def make_service(handler, api_key="re_test"):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmailService(
        api_key=api_key,
        from_email="steward@example.com",
        to_email="ops@example.com",
        client=client,
    )


class TestEmailRenderer:
    def test_escalation(self, renderer):
        email = renderer.escalation(
            title="Payments <failing>",
            description="Webhooks returning 500",
            severity="critical",
            source_task="payment_watch",
            created_at=datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc),
        )

        assert email.subject == "[CRITICAL] Steward: Payments <failing>"
        assert "Payments &lt;failing&gt;" in email.html
        assert "Severity: CRITICAL" in email.text
        assert "Source task: payment_watch" in email.text
        assert "Mar 01, 2026 09:30" in email.text

    def test_task_failure_retrying(self, renderer):
        email = renderer.task_failure(
            "daily_briefing", "timeout", retry_count=1, max_retries=3,
            failed_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

        assert email.subject == 'Steward: Task "daily_briefing" failed'
        assert "Retry count: 1 / 3" in email.text
        assert "2 more failures before the task is disabled" in email.text

    def test_task_failure_permanent(self, renderer):
        email = renderer.task_failure(
            "daily_briefing", "timeout", retry_count=3, max_retries=3,
            failed_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        )

        assert email.subject == 'Steward: Task "daily_briefing" permanently failed'
        assert "has been automatically disabled" in email.text
        assert "Re-enable the task manually" in email.text

    def test_daily_digest(self, renderer):
        reports = [
            SimpleNamespace(task_name="daily_briefing", report_type=None, severity="critical", summary="Revenue dropped"),
            SimpleNamespace(task_name=None, report_type="ad_hoc", severity="info", summary="x" * 150),
        ]
        escalations = [
            SimpleNamespace(title="Refund spike", severity="high", description="d", acknowledged=False, resolved=False),
        ]

        email = renderer.daily_digest(
            date="March 01, 2026",
            reports=reports,
            escalations=escalations,
            queue_pending=2,
            queue_completed=5,
            health_summary="All systems operational.",
        )

        assert email.subject == "Steward Daily Brief - March 01, 2026"
        assert "NEEDS ATTENTION:" in email.text
        assert "- daily_briefing" in email.text
        assert "x" * 100 + "..." in email.text
        assert "Unacknowledged: 1" in email.text
        assert "Pending: 2" in email.text
        assert "Completed Today: 5" in email.text

    def test_daily_digest_empty(self, renderer):
        email = renderer.daily_digest("March 01, 2026", [], [], 0, 0, "All systems operational.")
        assert "No reports generated today." in email.text
        assert "NEEDS ATTENTION" not in email.text


class TestEmailService:
    async def test_send(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "email_123"})

        service = make_service(handler)
        result = await service.send("Hello", "<p>hi</p>", "hi")

        assert result == {"success": True, "id": "email_123"}
        assert seen["auth"] == "Bearer re_test"
        assert seen["body"]["from"] == "Steward <steward@example.com>"
        assert seen["body"]["to"] == ["ops@example.com"]
        assert seen["body"]["subject"] == "Hello"

    async def test_no_api_key_skips(self):
        def handler(request):
            raise AssertionError("should not be called")

        service = make_service(handler, api_key=None)
        assert await service.send("s", "h", "t") == {"success": False, "reason": "no_api_key"}

    async def test_http_error_reported(self):
        service = make_service(lambda request: httpx.Response(422, json={"message": "bad"}))
        result = await service.send("s", "h", "t")
        assert result["success"] is False
        assert result["reason"] == "send_error"

    async def test_transport_error_reported(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await make_service(handler).send("s", "h", "t")
        assert result["reason"] == "send_error"
