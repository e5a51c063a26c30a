"""Conversation session repository for database operations."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import ConversationSessionModel, SessionStatus


class ConversationSessionRepository:
    """Repository for chat and voice session rows."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        system_prompt: str,
        user_id: str | None = None,
        conversation_type: str = "general",
        messages: list[dict[str, Any]] | None = None,
        context: dict[str, Any] | None = None,
        status: SessionStatus = SessionStatus.ACTIVE,
    ) -> ConversationSessionModel:
        """Create a new session row."""
        row = ConversationSessionModel(
            user_id=user_id,
            conversation_type=conversation_type,
            messages=messages or [],
            system_prompt=system_prompt,
            context=context or {},
            status=status,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def get(self, session_id: str) -> ConversationSessionModel | None:
        """Get a session by ID."""
        result = await self.session.execute(
            select(ConversationSessionModel).where(
                ConversationSessionModel.id == session_id
            )
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: str | None = None, limit: int = 20
    ) -> list[ConversationSessionModel]:
        """Get a user's sessions (every session when user_id is None), newest first."""
        stmt = select(ConversationSessionModel)
        if user_id is not None:
            stmt = stmt.where(ConversationSessionModel.user_id == user_id)
        result = await self.session.execute(
            stmt.order_by(ConversationSessionModel.created_at.desc()).limit(limit)
        )
        return list(result.scalars().all())

    async def save_transcript(
        self,
        session_id: str,
        messages: list[dict[str, Any]],
        status: SessionStatus,
    ) -> ConversationSessionModel | None:
        """Replace the stored transcript and status after a turn."""
        return await self._update(session_id, messages=messages, status=status)

    async def set_summary(
        self, session_id: str, summary: str
    ) -> ConversationSessionModel | None:
        return await self._update(session_id, summary=summary)

    async def set_status(
        self, session_id: str, status: SessionStatus
    ) -> ConversationSessionModel | None:
        return await self._update(session_id, status=status)

    async def _update(
        self, session_id: str, **values: Any
    ) -> ConversationSessionModel | None:
        values["updated_at"] = datetime.now(timezone.utc)
        result = await self.session.execute(
            update(ConversationSessionModel)
            .where(ConversationSessionModel.id == session_id)
            .values(**values)
            .returning(ConversationSessionModel)
            .execution_options(synchronize_session="fetch", populate_existing=True)
        )
        return result.scalar_one_or_none()
