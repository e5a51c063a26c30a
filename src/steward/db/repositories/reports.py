"""Report repository for database operations."""

from datetime import datetime
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import ReportModel, ReportSeverity


class ReportRepository:
    """Repository for report database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        content: str,
        task_name: str | None = None,
        report_type: str | None = None,
        summary: str | None = None,
        severity: ReportSeverity = ReportSeverity.INFO,
        model_used: str | None = None,
        tokens_in: int | None = None,
        tokens_out: int | None = None,
        cost_estimate: float | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ReportModel:
        """Insert a report row.

        Args:
            content: Full report body
            task_name: Scheduled task that produced the report, None for ad-hoc
            report_type: Free-form category for ad-hoc reports
            summary: Short derivative of the content
            severity: Heuristic severity of the content
            model_used: Model that generated the content
            tokens_in: Input tokens spent
            tokens_out: Output tokens spent
            cost_estimate: Estimated USD cost
            metadata: Additional JSON metadata

        Returns:
            The created ReportModel
        """
        report = ReportModel(
            task_name=task_name,
            report_type=report_type,
            content=content,
            summary=summary,
            severity=severity,
            model_used=model_used,
            tokens_in=tokens_in,
            tokens_out=tokens_out,
            cost_estimate=cost_estimate,
            metadata_=metadata,
            acknowledged=False,
        )
        self.session.add(report)
        await self.session.flush()
        return report

    async def exists_for_task_since(self, task_name: str, since: datetime) -> bool:
        """Check whether a report for a task was created at or after `since`."""
        result = await self.session.execute(
            select(ReportModel.id)
            .where(ReportModel.task_name == task_name)
            .where(ReportModel.created_at >= since)
            .limit(1)
        )
        return result.first() is not None

    async def get_latest_for_task(self, task_name: str) -> ReportModel | None:
        """Get the most recent report produced by a task."""
        result = await self.session.execute(
            select(ReportModel)
            .where(ReportModel.task_name == task_name)
            .order_by(ReportModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def search(
        self,
        query: str | None = None,
        report_type: str | None = None,
        limit: int = 10,
    ) -> list[ReportModel]:
        """Search reports by case-insensitive substring of summary or content.

        Returns:
            Matching reports, newest first
        """
        stmt = select(ReportModel)
        if report_type:
            stmt = stmt.where(ReportModel.report_type == report_type)
        if query:
            pattern = f"%{query.lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(ReportModel.summary).like(pattern),
                    func.lower(ReportModel.content).like(pattern),
                )
            )
        result = await self.session.execute(
            stmt.order_by(ReportModel.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_since(self, since: datetime) -> list[ReportModel]:
        """Get reports created at or after `since`, newest first."""
        result = await self.session.execute(
            select(ReportModel)
            .where(ReportModel.created_at >= since)
            .order_by(ReportModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_recent(self, limit: int = 5) -> list[ReportModel]:
        """Get the most recent reports."""
        result = await self.session.execute(
            select(ReportModel).order_by(ReportModel.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def list_filtered(
        self,
        since: datetime,
        task_name: str | None = None,
        severity: ReportSeverity | None = None,
        acknowledged: bool | None = None,
    ) -> list[ReportModel]:
        """Get reports created at or after `since` matching the given filters, newest first."""
        stmt = select(ReportModel).where(ReportModel.created_at >= since)
        if task_name:
            stmt = stmt.where(ReportModel.task_name == task_name)
        if severity is not None:
            stmt = stmt.where(ReportModel.severity == severity)
        if acknowledged is not None:
            stmt = stmt.where(ReportModel.acknowledged.is_(acknowledged))
        result = await self.session.execute(stmt.order_by(ReportModel.created_at.desc()))
        return list(result.scalars().all())
