"""Memory and notification settings repositories."""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from steward.db.models import MemoryModel, NotificationSettingsModel

PERSONA_CATEGORY = "persona"


class MemoryRepository:
    """Repository for the agent's long-term key/value memory."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def upsert(
        self, key: str, value: Any, category: str | None = None
    ) -> MemoryModel:
        """Insert or overwrite a memory entry."""
        entry = await self.session.get(MemoryModel, key)
        if entry is None:
            entry = MemoryModel(key=key, value=value, category=category)
            self.session.add(entry)
        else:
            entry.value = value
            entry.category = category
            entry.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return entry

    async def get(self, key: str) -> MemoryModel | None:
        return await self.session.get(MemoryModel, key)

    async def list_by_categories(
        self, categories: list[str], limit: int = 20
    ) -> list[MemoryModel]:
        """Get entries in any of the given categories, most recently updated first."""
        result = await self.session.execute(
            select(MemoryModel)
            .where(MemoryModel.category.in_(categories))
            .order_by(MemoryModel.updated_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def persona_parameters(self) -> dict[str, Any]:
        """Get persona entries as a {name: value} mapping."""
        result = await self.session.execute(
            select(MemoryModel)
            .where(MemoryModel.category == PERSONA_CATEGORY)
            .order_by(MemoryModel.key.asc())
        )
        return {row.key: row.value for row in result.scalars().all()}


class NotificationSettingsRepository:
    """Repository for email notification preferences (single operator)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_first(self) -> NotificationSettingsModel | None:
        result = await self.session.execute(select(NotificationSettingsModel).limit(1))
        return result.scalar_one_or_none()

    async def upsert(self, user_email: str, **values: Any) -> NotificationSettingsModel:
        """Create the operator's settings row or update the given fields."""
        row = await self.session.get(NotificationSettingsModel, user_email)
        if row is None:
            row = NotificationSettingsModel(user_email=user_email, **values)
            self.session.add(row)
        else:
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return row
