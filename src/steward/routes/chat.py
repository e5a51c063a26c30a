"""Text chat endpoints."""

from fastapi import APIRouter, HTTPException, Query

from steward.dependencies import ChatServiceDep
from steward.models.api import (
    ChatMessageRequest,
    ChatMessageResponse,
    ChatSessionCreate,
    ChatSessionCreated,
    ChatSessionList,
    ChatSessionResponse,
    ChatSessionSummary,
)
from steward.services.chat import SessionClosedError, SessionNotFoundError

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post("/sessions")
async def create_session(
    body: ChatSessionCreate, chat: ChatServiceDep
) -> ChatSessionCreated:
    session_id, message = await chat.start_session(body.user_id, body.conversation_type)
    return ChatSessionCreated(session_id=session_id, message=message)


@router.post("/sessions/{session_id}/messages")
async def send_message(
    session_id: str, body: ChatMessageRequest, chat: ChatServiceDep
) -> ChatMessageResponse:
    try:
        reply = await chat.send_message(session_id, body.message)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except SessionClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return ChatMessageResponse(
        message=reply.message,
        tool_calls=reply.tool_calls,
        session_complete=reply.session_complete,
    )


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, chat: ChatServiceDep) -> ChatSessionResponse:
    try:
        row = await chat.get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return ChatSessionResponse(
        session_id=row.id,
        user_id=row.user_id,
        conversation_type=row.conversation_type,
        status=row.status.value,
        messages=row.messages or [],
        summary=row.summary,
        created_at=row.created_at.isoformat(),
        updated_at=row.updated_at.isoformat(),
    )


@router.get("/sessions")
async def list_sessions(
    chat: ChatServiceDep,
    user_id: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
) -> ChatSessionList:
    """Recent sessions, newest first."""
    sessions = await chat.list_sessions(user_id, limit)
    return ChatSessionList(sessions=[ChatSessionSummary(**s) for s in sessions])
