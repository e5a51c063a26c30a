"""Conversation control tools."""

import logging

from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError

from steward.db.repositories import ConversationSessionRepository
from steward.tools.registry import Tool, ToolContext

logger = logging.getLogger(__name__)


class EndConversationInput(BaseModel):
    summary: str = Field(
        description="Summary of the conversation: key topics, decisions made, tasks queued, and next steps"
    )


async def end_conversation(params: EndConversationInput, context: ToolContext) -> dict:
    if context.session_id:
        try:
            async with context.session_factory() as session:
                await ConversationSessionRepository(session).set_summary(
                    context.session_id, params.summary
                )
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Failed to store summary for session {context.session_id}: {e}")
    return {"success": True, "summary": params.summary, "message": "Conversation ended"}


TOOLS = [
    Tool(
        name="end_conversation",
        description=(
            "Call this when the conversation reaches a natural conclusion. Provide a summary "
            "of what was discussed, decided, or queued."
        ),
        input_model=EndConversationInput,
        handler=end_conversation,
        ends_conversation=True,
    ),
]
