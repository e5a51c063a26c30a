from .api import (
    ChatMessageRequest,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionCreated,
    ChatSessionList,
    ChatSessionResponse,
    ChatSessionSummary,
    EscalationItem,
    EscalationList,
    HealthResponse,
    QueueItem,
    QueueList,
    ReloadResponse,
    ReportItem,
    ReportList,
    TaskConfigResponse,
    TaskRunResponse,
    VoiceEndRequest,
    VoiceEndResponse,
    VoiceSessionResponse,
    VoiceStartRequest,
    VoiceToolRequest,
    VoiceToolResponse,
)
from .task_config import TaskConfig

__all__ = [
    # API schemas
    "ChatMessageRequest",
    "ChatMessageResponse",
    "ChatSessionCreate",
    "ChatSessionCreated",
    "ChatSessionList",
    "ChatSessionResponse",
    "ChatSessionSummary",
    "EscalationItem",
    "EscalationList",
    "HealthResponse",
    "QueueItem",
    "QueueList",
    "ReloadResponse",
    "ReportItem",
    "ReportList",
    "TaskConfigResponse",
    "TaskRunResponse",
    "VoiceEndRequest",
    "VoiceEndResponse",
    "VoiceSessionResponse",
    "VoiceStartRequest",
    "VoiceToolRequest",
    "VoiceToolResponse",
    # Domain models
    "TaskConfig",
]
