"""Repository classes for database operations."""

from steward.db.repositories.escalations import EscalationRepository
from steward.db.repositories.memory import MemoryRepository, NotificationSettingsRepository
from steward.db.repositories.queue import QueueRepository
from steward.db.repositories.reports import ReportRepository
from steward.db.repositories.sessions import ConversationSessionRepository
from steward.db.repositories.task_configs import TaskConfigRepository

__all__ = [
    "ConversationSessionRepository",
    "EscalationRepository",
    "MemoryRepository",
    "NotificationSettingsRepository",
    "QueueRepository",
    "ReportRepository",
    "TaskConfigRepository",
]
