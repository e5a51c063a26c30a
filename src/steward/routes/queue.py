"""Queue listing endpoint."""

from typing import Literal

from fastapi import APIRouter, Query

from steward.db.models import QueueStatus
from steward.db.repositories import QueueRepository
from steward.dependencies import DbSessionDep
from steward.models.api import QueueItem, QueueList

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("")
async def list_queue(
    session: DbSessionDep,
    status: Literal["pending", "in_progress", "completed", "failed", "cancelled"] | None = None,
    target_mode: Literal["railway", "cowork"] | None = None,
    limit: int = Query(default=50, ge=1, le=500),
) -> QueueList:
    """Queue items, P0 first and oldest first within a priority."""
    rows = await QueueRepository(session).list_items(
        status=QueueStatus(status) if status else None,
        target_mode=target_mode,
        limit=limit,
    )
    queue = [
        QueueItem(
            id=q.id,
            request_summary=q.request_summary,
            full_context=q.full_context,
            required_tools=list(q.required_tools or []),
            priority=q.priority,
            queued_by=q.queued_by,
            target_mode=q.target_mode,
            status=q.status.value,
            queued_at=q.queued_at.isoformat(),
            completed_at=q.completed_at.isoformat() if q.completed_at else None,
            result_summary=q.result_summary,
            error_message=q.error_message,
        )
        for q in rows
    ]
    return QueueList(
        queue=queue,
        count=len(queue),
        filters={"status": status, "target_mode": target_mode, "limit": limit},
    )
