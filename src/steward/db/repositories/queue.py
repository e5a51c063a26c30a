"""Queue repository for cross-mode work handoff."""

from datetime import datetime, timezone

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import QueueItemModel, QueueStatus

PRIORITY_ORDER = {"P0": 0, "P1": 1, "P2": 2, "P3": 3}


class QueueRepository:
    """Repository for queue item database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        request_summary: str,
        full_context: str | None = None,
        required_tools: list[str] | None = None,
        priority: str = "P2",
        target_mode: str = "cowork",
        queued_by: str = "railway",
        queued_at: datetime | None = None,
    ) -> QueueItemModel:
        """Queue a pending work item.

        Args:
            request_summary: One-line description of the work
            full_context: Everything the other mode needs to do the work
            required_tools: Tool names the other mode will need
            priority: P0 (highest) to P3
            target_mode: Mode expected to pick the item up
            queued_by: Mode that queued the item
            queued_at: Explicit queue time, defaults to now

        Returns:
            The created QueueItemModel
        """
        item = QueueItemModel(
            request_summary=request_summary,
            full_context=full_context,
            required_tools=required_tools or [],
            priority=priority,
            target_mode=target_mode,
            queued_by=queued_by,
            status=QueueStatus.PENDING,
            queued_at=queued_at or datetime.now(timezone.utc),
        )
        self.session.add(item)
        await self.session.flush()
        return item

    async def list_items(
        self,
        status: QueueStatus | None = None,
        target_mode: str | None = None,
        limit: int = 10,
    ) -> list[QueueItemModel]:
        """List queue items, P0 first, oldest first within a priority."""
        priority_rank = case(PRIORITY_ORDER, value=QueueItemModel.priority, else_=len(PRIORITY_ORDER))
        stmt = select(QueueItemModel)
        if status is not None:
            stmt = stmt.where(QueueItemModel.status == status)
        if target_mode:
            stmt = stmt.where(QueueItemModel.target_mode == target_mode)
        result = await self.session.execute(
            stmt.order_by(priority_rank.asc(), QueueItemModel.queued_at.asc()).limit(limit)
        )
        return list(result.scalars().all())

    async def complete(
        self,
        item_id: str,
        status: QueueStatus,
        result_summary: str | None = None,
        result_detail: str | None = None,
        error_message: str | None = None,
    ) -> QueueItemModel | None:
        """Mark a queue item completed or failed.

        The error message is stored only for failed items.

        Returns:
            Updated QueueItemModel, or None if the item does not exist
        """
        values = {
            "status": status,
            "completed_at": datetime.now(timezone.utc),
            "result_summary": result_summary,
            "result_detail": result_detail,
        }
        if status == QueueStatus.FAILED and error_message:
            values["error_message"] = error_message

        result = await self.session.execute(
            update(QueueItemModel)
            .where(QueueItemModel.id == item_id)
            .values(**values)
            .returning(QueueItemModel)
            .execution_options(synchronize_session="fetch", populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def count(
        self, status: QueueStatus, completed_since: datetime | None = None
    ) -> int:
        """Count items in a status, optionally completed after a moment."""
        stmt = (
            select(func.count())
            .select_from(QueueItemModel)
            .where(QueueItemModel.status == status)
        )
        if completed_since is not None:
            stmt = stmt.where(QueueItemModel.completed_at >= completed_since)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())
