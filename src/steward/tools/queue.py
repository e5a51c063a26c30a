"""Cross-mode work queue tools."""

import logging
from typing import Literal

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.models import QueueStatus
from steward.db.repositories import QueueRepository
from steward.tools.registry import Tool, ToolContext
from steward.tools.serialize import row_to_dict

logger = logging.getLogger(__name__)

Priority = Literal["P0", "P1", "P2", "P3"]
TargetMode = Literal["railway", "cowork"]


class QueueTaskInput(BaseModel):
    request_summary: str = Field(description="Brief summary of the request")
    full_context: str | None = Field(
        default=None, description="Complete context and instructions for the task"
    )
    required_tools: list[str] = Field(
        default_factory=list, description='Tools needed (e.g. ["google_drive", "gmail"])'
    )
    priority: Priority = Field(default="P2", description="Priority level (P0=urgent, P3=whenever)")
    target_mode: TargetMode = Field(
        default="cowork", description="Which mode should handle this (default: cowork)"
    )


class ReadQueueInput(BaseModel):
    status: Literal["pending", "in_progress", "completed", "failed", "cancelled"] | None = Field(
        default=None, description="Filter by status"
    )
    target_mode: TargetMode | None = Field(default=None, description="Filter by target mode")
    limit: int = Field(default=10, ge=1, le=100, description="Maximum items to return")


class CompleteQueueItemInput(BaseModel):
    id: str = Field(description="Queue item UUID")
    status: str = Field(description="New status: completed or failed")
    result_summary: str | None = Field(default=None, description="Brief result summary")
    result_detail: str | None = Field(default=None, description="Detailed result or output")
    error_message: str | None = Field(default=None, description="Error message if failed")


async def queue_task(params: QueueTaskInput, context: ToolContext) -> dict:
    try:
        async with context.session_factory() as session:
            item = await QueueRepository(session).create(
                request_summary=params.request_summary,
                full_context=params.full_context,
                required_tools=params.required_tools,
                priority=params.priority,
                target_mode=params.target_mode,
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Queue task failed: {e}")
        return {"success": False, "error": str(e), "request_summary": params.request_summary}

    logger.info(
        f"Task queued for {params.target_mode}: {params.request_summary} [{params.priority}]"
    )
    return {
        "success": True,
        "queue_id": item.id,
        "request_summary": params.request_summary,
        "target_mode": params.target_mode,
        "priority": params.priority,
        "queued_at": item.queued_at.isoformat(),
        "message": f"Task queued for {params.target_mode} mode ({params.priority} priority)",
    }


async def read_queue(params: ReadQueueInput, context: ToolContext) -> dict:
    status = QueueStatus(params.status) if params.status else None
    try:
        async with context.session_factory() as session:
            items = await QueueRepository(session).list_items(
                status=status, target_mode=params.target_mode, limit=params.limit
            )
    except SQLAlchemyError as e:
        logger.error(f"Read queue failed: {e}")
        return {"success": False, "error": str(e)}

    return {
        "success": True,
        "items": [row_to_dict(item) for item in items],
        "count": len(items),
        "filters": {
            "status": params.status,
            "target_mode": params.target_mode,
            "limit": params.limit,
        },
    }


async def complete_queue_item(params: CompleteQueueItemInput, context: ToolContext) -> dict:
    if params.status not in (QueueStatus.COMPLETED.value, QueueStatus.FAILED.value):
        return {
            "success": False,
            "error": "Status must be 'completed' or 'failed'",
            "queue_id": params.id,
        }

    status = QueueStatus(params.status)
    try:
        async with context.session_factory() as session:
            item = await QueueRepository(session).complete(
                params.id,
                status,
                result_summary=params.result_summary,
                result_detail=params.result_detail,
                error_message=params.error_message,
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Complete queue item failed: {e}")
        return {"success": False, "error": str(e), "queue_id": params.id}

    if item is None:
        return {"success": False, "error": f"Queue item not found: {params.id}", "queue_id": params.id}

    logger.info(f"Queue item {status.value}: {item.request_summary}")
    return {
        "success": True,
        "queue_id": params.id,
        "status": status.value,
        "completed_at": item.completed_at.isoformat() if item.completed_at else None,
        "message": f"Queue item marked as {status.value}",
    }


TOOLS = [
    Tool(
        name="queue_task",
        description=(
            "Queue a task for your other mode. Use this when the operator asks for something "
            "that requires tools you don't have here (drive, mail, calendar and so on). The "
            "desktop mode will process it the next time it runs."
        ),
        input_model=QueueTaskInput,
        handler=queue_task,
    ),
    Tool(
        name="read_queue",
        description="Check the task queue to see pending, in-progress, or completed items.",
        input_model=ReadQueueInput,
        handler=read_queue,
    ),
    Tool(
        name="complete_queue_item",
        description="Mark a queue item as completed or failed after processing.",
        input_model=CompleteQueueItemInput,
        handler=complete_queue_item,
    ),
]
