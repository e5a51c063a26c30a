"""API request/response schemas for FastAPI endpoints."""

from typing import Any, Literal

from pydantic import BaseModel, Field

ConversationType = Literal[
    "general", "status_check", "task_setup", "escalation_review", "idea_brainstorm"
]


class HealthResponse(BaseModel):
    status: str
    scheduler_running: bool
    registered_tasks: int


# Chat schemas
class ChatSessionCreate(BaseModel):
    user_id: str | None = None
    conversation_type: ConversationType = "general"


class ChatSessionCreated(BaseModel):
    session_id: str
    message: str


class ChatMessageRequest(BaseModel):
    message: str = Field(min_length=1)


class ChatMessageResponse(BaseModel):
    message: str
    tool_calls: list[str] = []
    session_complete: bool = False


class ChatSessionSummary(BaseModel):
    session_id: str
    conversation_type: str
    first_message: str
    status: str
    summary: str | None = None
    created_at: str


class ChatSessionList(BaseModel):
    sessions: list[ChatSessionSummary]


class ChatSessionResponse(BaseModel):
    session_id: str
    user_id: str | None
    conversation_type: str
    status: str
    messages: list[dict[str, Any]]
    summary: str | None = None
    created_at: str
    updated_at: str


# Voice schemas
class VoiceStartRequest(BaseModel):
    user_id: str | None = None
    conversation_type: ConversationType = "general"


class VoiceSessionResponse(BaseModel):
    session_id: str
    system_prompt: str
    tools: list[dict[str, Any]]
    client_secret: str | None = None
    expires_at: int | None = None


class VoiceToolRequest(BaseModel):
    session_id: str
    tool_name: str
    tool_input: dict[str, Any] = {}


class VoiceToolResponse(BaseModel):
    result: dict[str, Any]
    session_complete: bool = False


class VoiceEndRequest(BaseModel):
    session_id: str
    transcript: str = ""
    tools_used: int = 0
    duration: int = 0


class VoiceEndResponse(BaseModel):
    summary: str
    actions_executed: int
    estimated_tokens: int
    estimated_cost: float


# Scheduler schemas
class TaskConfigResponse(BaseModel):
    task_id: str
    task_name: str
    description: str | None
    cron_schedule: str
    model: str
    enabled: bool
    registered: bool
    max_retries: int
    consecutive_failures: int
    last_run_at: str | None
    last_run_status: str | None
    last_error: str | None


class ReloadResponse(BaseModel):
    registered: list[str]
    removed: list[str]
    active: list[str]


class TaskRunResponse(BaseModel):
    task_name: str
    started: bool


# Operator read schemas
class ReportItem(BaseModel):
    id: str
    task_name: str | None
    report_type: str | None
    content: str
    summary: str | None
    severity: str
    model_used: str | None
    tokens_in: int | None
    tokens_out: int | None
    cost_estimate: float | None
    acknowledged: bool
    created_at: str


class ReportList(BaseModel):
    reports: list[ReportItem]
    count: int
    filters: dict[str, Any]


class EscalationItem(BaseModel):
    id: str
    title: str
    description: str
    severity: str
    category: str | None
    source_task: str | None
    acknowledged: bool
    resolved: bool
    created_at: str


class EscalationList(BaseModel):
    escalations: list[EscalationItem]
    count: int
    filters: dict[str, Any]


class QueueItem(BaseModel):
    id: str
    request_summary: str
    full_context: str | None
    required_tools: list[str]
    priority: str
    queued_by: str
    target_mode: str
    status: str
    queued_at: str
    completed_at: str | None
    result_summary: str | None
    error_message: str | None


class QueueList(BaseModel):
    queue: list[QueueItem]
    count: int
    filters: dict[str, Any]
