"""Long-term memory tool."""

import json
import logging
from typing import Literal

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.repositories import MemoryRepository
from steward.tools.registry import Tool, ToolContext

logger = logging.getLogger(__name__)


class UpdateMemoryInput(BaseModel):
    key: str = Field(
        description='Memory key (e.g. "operator_timezone", "preferred_task_time", "active_projects")'
    )
    value: str = Field(description="Memory value (can be a JSON string for complex data)")
    category: Literal["preference", "context", "decision", "insight", "persona"] | None = Field(
        default=None, description="Memory category for organization"
    )


def parse_memory_value(value: str):
    """Store JSON values as structured data and anything else as a plain string."""
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


async def update_memory(params: UpdateMemoryInput, context: ToolContext) -> dict:
    value = parse_memory_value(params.value)
    try:
        async with context.session_factory() as session:
            await MemoryRepository(session).upsert(params.key, value, params.category)
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Memory update failed for {params.key}: {e}")
        return {"success": False, "error": str(e), "key": params.key}

    logger.info(f"Memory updated: {params.key}")
    return {"success": True, "key": params.key, "value": value, "category": params.category}


TOOLS = [
    Tool(
        name="update_memory",
        description=(
            "Store or update a piece of information in long-term memory. Use this to "
            "remember the operator's preferences, context about the product, or important "
            "decisions. Memory persists across all sessions."
        ),
        input_model=UpdateMemoryInput,
        handler=update_memory,
    ),
]
