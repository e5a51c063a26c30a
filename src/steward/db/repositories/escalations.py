"""Escalation repository for database operations."""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import EscalationModel, EscalationSeverity


class EscalationRepository:
    """Repository for escalation database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        title: str,
        description: str,
        severity: EscalationSeverity,
        source_task: str | None = None,
        category: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EscalationModel:
        """Insert a new, unacknowledged and unresolved escalation."""
        escalation = EscalationModel(
            title=title,
            description=description,
            severity=severity,
            source_task=source_task,
            category=category,
            metadata_=metadata,
            acknowledged=False,
            resolved=False,
        )
        self.session.add(escalation)
        await self.session.flush()
        return escalation

    async def list_open(self, limit: int = 10) -> list[EscalationModel]:
        """Get unresolved escalations, newest first."""
        result = await self.session.execute(
            select(EscalationModel)
            .where(EscalationModel.resolved.is_(False))
            .order_by(EscalationModel.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_source(self, source_task: str) -> list[EscalationModel]:
        """Get every escalation raised for a task."""
        result = await self.session.execute(
            select(EscalationModel)
            .where(EscalationModel.source_task == source_task)
            .order_by(EscalationModel.created_at.asc())
        )
        return list(result.scalars().all())

    async def count_open(self) -> int:
        """Count unresolved escalations."""
        result = await self.session.execute(
            select(func.count())
            .select_from(EscalationModel)
            .where(EscalationModel.resolved.is_(False))
        )
        return int(result.scalar_one())

    async def list_filtered(
        self, resolved: bool = False, severity: EscalationSeverity | None = None
    ) -> list[EscalationModel]:
        """Get escalations by resolved state and optional severity, newest first."""
        stmt = select(EscalationModel).where(EscalationModel.resolved.is_(resolved))
        if severity is not None:
            stmt = stmt.where(EscalationModel.severity == severity)
        result = await self.session.execute(stmt.order_by(EscalationModel.created_at.desc()))
        return list(result.scalars().all())
