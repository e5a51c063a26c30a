"""Notification settings tool."""

import logging
import re

from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError

from steward.db.repositories import NotificationSettingsRepository
from steward.tools.registry import Tool, ToolContext

logger = logging.getLogger(__name__)

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class UpdateNotificationSettingsInput(BaseModel):
    email_enabled: bool | None = Field(
        default=None, description="Enable or disable all email notifications"
    )
    digest_enabled: bool | None = Field(default=None, description="Enable or disable daily digest emails")
    digest_time: str | None = Field(
        default=None, description='Time to send the daily digest in UTC (e.g. "14:00")'
    )
    immediate_severities: list[str] | None = Field(
        default=None,
        description='Severities that trigger immediate emails (e.g. ["critical", "high"])',
    )
    quiet_hours_start: str | None = Field(
        default=None,
        description=(
            'Start of quiet hours in UTC (e.g. "04:00"). During quiet hours, immediate '
            "notifications become digest."
        ),
    )
    quiet_hours_end: str | None = Field(default=None, description='End of quiet hours in UTC (e.g. "13:00")')

    @field_validator("digest_time", "quiet_hours_start", "quiet_hours_end")
    @classmethod
    def _check_time(cls, value: str | None) -> str | None:
        if value is not None and not _HHMM.match(value):
            raise ValueError("must be HH:MM in 24-hour UTC time")
        return value


SETTINGS_FIELDS = (
    "email_enabled",
    "digest_enabled",
    "digest_time",
    "immediate_severities",
    "quiet_hours_start",
    "quiet_hours_end",
)


async def update_notification_settings(
    params: UpdateNotificationSettingsInput, context: ToolContext
) -> dict:
    updates = params.model_dump(exclude_none=True)
    if not updates:
        return {"success": False, "error": "No valid fields provided for update"}

    try:
        async with context.session_factory() as session:
            row = await NotificationSettingsRepository(session).upsert(
                context.operator_email, **updates
            )
            await session.commit()
    except SQLAlchemyError as e:
        logger.error(f"Error updating notification settings: {e}")
        return {"success": False, "error": str(e)}

    updated_fields = list(updates)
    logger.info(f"Notification settings updated: {updated_fields}")
    return {
        "success": True,
        "updated_fields": updated_fields,
        "current_settings": {field: getattr(row, field) for field in SETTINGS_FIELDS},
        "message": f"Updated {', '.join(updated_fields)}",
    }


TOOLS = [
    Tool(
        name="update_notification_settings",
        description=(
            "Update notification settings based on the operator's preferences. Use this "
            "when the operator asks to change how or when notifications are sent."
        ),
        input_model=UpdateNotificationSettingsInput,
        handler=update_notification_settings,
    ),
]
