"""Database module for the Steward operations agent."""

from steward.db.engine import create_engine, create_session_factory, get_session
from steward.db.models import (
    Base,
    ConversationSessionModel,
    EscalationModel,
    MemoryModel,
    NotificationSettingsModel,
    QueueItemModel,
    ReportModel,
    TaskConfigModel,
)

__all__ = [
    "create_engine",
    "create_session_factory",
    "get_session",
    "Base",
    "ConversationSessionModel",
    "EscalationModel",
    "MemoryModel",
    "NotificationSettingsModel",
    "QueueItemModel",
    "ReportModel",
    "TaskConfigModel",
]
