"""Report listing endpoint."""

from datetime import datetime, timedelta, timezone
from typing import Literal

from fastapi import APIRouter, Query

from steward.db.models import ReportSeverity
from steward.db.repositories import ReportRepository
from steward.dependencies import DbSessionDep
from steward.models.api import ReportItem, ReportList

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("")
async def list_reports(
    session: DbSessionDep,
    days: int = Query(default=7, ge=1),
    task_name: str | None = None,
    severity: Literal["info", "warning", "critical"] | None = None,
    acknowledged: bool | None = None,
) -> ReportList:
    """Reports from the last `days` days, newest first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    rows = await ReportRepository(session).list_filtered(
        since,
        task_name=task_name,
        severity=ReportSeverity(severity) if severity else None,
        acknowledged=acknowledged,
    )
    reports = [
        ReportItem(
            id=r.id,
            task_name=r.task_name,
            report_type=r.report_type,
            content=r.content,
            summary=r.summary,
            severity=r.severity.value,
            model_used=r.model_used,
            tokens_in=r.tokens_in,
            tokens_out=r.tokens_out,
            cost_estimate=r.cost_estimate,
            acknowledged=r.acknowledged,
            created_at=r.created_at.isoformat(),
        )
        for r in rows
    ]
    return ReportList(
        reports=reports,
        count=len(reports),
        filters={
            "days": days,
            "task_name": task_name,
            "severity": severity,
            "acknowledged": acknowledged,
        },
    )
