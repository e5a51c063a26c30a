"""Voice session endpoints.

The browser holds the realtime audio connection; these endpoints mint the
session, run tools the realtime model calls and store the final transcript.
"""

import logging

from fastapi import APIRouter, HTTPException

from steward.dependencies import ChatServiceDep
from steward.models.api import (
    VoiceEndRequest,
    VoiceEndResponse,
    VoiceSessionResponse,
    VoiceStartRequest,
    VoiceToolRequest,
    VoiceToolResponse,
)
from steward.services.chat import SessionClosedError, SessionNotFoundError
from steward.services.voice import RealtimeSessionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat/voice", tags=["voice"])


@router.post("/start")
async def start_voice(body: VoiceStartRequest, chat: ChatServiceDep) -> VoiceSessionResponse:
    try:
        session = await chat.start_voice_session(body.user_id, body.conversation_type)
    except RealtimeSessionError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return VoiceSessionResponse(**session)


@router.post("/tool")
async def execute_tool(body: VoiceToolRequest, chat: ChatServiceDep) -> VoiceToolResponse:
    try:
        outcome = await chat.execute_voice_tool(
            body.session_id, body.tool_name, body.tool_input
        )
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except SessionClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return VoiceToolResponse(**outcome)


@router.post("/end")
async def end_voice(body: VoiceEndRequest, chat: ChatServiceDep) -> VoiceEndResponse:
    try:
        result = await chat.end_voice_session(
            body.session_id, body.transcript, body.tools_used, body.duration
        )
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    logger.info(f"Voice session {body.session_id} ended")
    return VoiceEndResponse(**result)
