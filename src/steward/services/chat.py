"""Chat and voice session service."""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from steward.db.models import ConversationSessionModel, QueueStatus, SessionStatus
from steward.db.repositories import (
    ConversationSessionRepository,
    EscalationRepository,
    MemoryRepository,
    QueueRepository,
    ReportRepository,
    TaskConfigRepository,
)
from steward.services.conversation import ConversationLoop
from steward.services.llm import DEFAULT_MODEL, TextGenerationClient
from steward.services.prompts import build_chat_system_prompt, build_voice_system_prompt
from steward.services.voice import (
    RealtimeSessionClient,
    estimate_voice_cost,
    parse_transcript,
    voice_summary,
)
from steward.tools.registry import ReloadHook, ToolContext
from steward.tools.serialize import to_jsonable

if TYPE_CHECKING:
    from steward.services.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)

GREETING_PROMPT = (
    "Start the conversation with a contextual greeting. Be aware of what's in the context "
    "(open escalations, pending queue items, etc.) and reference relevant items naturally "
    "if appropriate. Keep it brief: 2-3 sentences max."
)
GREETING_MAX_TOKENS = 1024


class SessionNotFoundError(LookupError):
    """Raised when a conversation session does not exist."""


class SessionClosedError(RuntimeError):
    """Raised when a message is sent to a completed session."""


@dataclass
class ChatReply:
    message: str
    tool_calls: list[str] = field(default_factory=list)
    session_complete: bool = False


class ChatService:
    """Runs text chat turns and voice tool calls against stored sessions.

    Sessions assume a single writer: concurrent turns on the same session
    are not detected.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        conversation: ConversationLoop,
        client: TextGenerationClient,
        model: str = DEFAULT_MODEL,
        realtime: RealtimeSessionClient | None = None,
        reload_scheduler: ReloadHook | None = None,
        notifier: "NotificationDispatcher | None" = None,
        operator_email: str = "operator@localhost",
    ) -> None:
        self._session_factory = session_factory
        self._conversation = conversation
        self._client = client
        self._model = model
        self._realtime = realtime
        self._reload_scheduler = reload_scheduler
        self._notifier = notifier
        self._operator_email = operator_email

    def _tool_context(self, session_id: str) -> ToolContext:
        return ToolContext(
            session_factory=self._session_factory,
            session_id=session_id,
            reload_scheduler=self._reload_scheduler,
            notifier=self._notifier,
            default_model=self._model,
            operator_email=self._operator_email,
        )

    async def enrich_context(
        self, user_id: str | None, conversation_type: str
    ) -> dict[str, Any]:
        """Snapshot of what the agent should know when a session starts.

        Lookup failures are logged and leave the context partially filled.
        """
        context: dict[str, Any] = {
            "user_id": user_id,
            "conversation_type": conversation_type,
        }
        try:
            async with self._session_factory() as session:
                memory = await MemoryRepository(session).list_by_categories(
                    ["preference", "context"], limit=20
                )
                context["recent_memory"] = [
                    {"key": m.key, "value": to_jsonable(m.value), "category": m.category}
                    for m in memory
                ]

                escalations = EscalationRepository(session)
                context["open_escalations"] = [
                    {
                        "id": e.id,
                        "title": e.title,
                        "severity": e.severity.value,
                        "created_at": e.created_at.isoformat(),
                    }
                    for e in await escalations.list_open(limit=10)
                ]

                pending = await QueueRepository(session).list_items(
                    status=QueueStatus.PENDING, limit=10
                )
                context["pending_queue"] = [
                    {
                        "id": q.id,
                        "request_summary": q.request_summary,
                        "priority": q.priority,
                        "target_mode": q.target_mode,
                    }
                    for q in pending
                ]

                context["recent_reports"] = [
                    {
                        "id": r.id,
                        "task_name": r.task_name,
                        "report_type": r.report_type,
                        "summary": r.summary,
                        "created_at": r.created_at.isoformat(),
                    }
                    for r in await ReportRepository(session).list_recent(limit=5)
                ]

                if conversation_type in ("status_check", "task_setup"):
                    context["task_configs"] = [
                        {
                            "task_name": t.task_name,
                            "enabled": t.enabled,
                            "cron_schedule": t.cron_schedule,
                            "last_run_status": (
                                t.last_run_status.value if t.last_run_status else None
                            ),
                            "consecutive_failures": t.consecutive_failures,
                        }
                        for t in await TaskConfigRepository(session).list_all()
                    ]

                if conversation_type == "escalation_review":
                    context["all_escalations"] = [
                        {
                            "id": e.id,
                            "title": e.title,
                            "severity": e.severity.value,
                            "description": e.description,
                        }
                        for e in await escalations.list_open(limit=50)
                    ]
        except SQLAlchemyError as e:
            logger.error(f"Context enrichment error: {e}")
        return context

    async def start_session(
        self, user_id: str | None, conversation_type: str = "general"
    ) -> tuple[str, str]:
        """Create a chat session opened by a model-written greeting.

        Returns:
            (session_id, opening_message)
        """
        logger.info(f"Starting {conversation_type} session for user {user_id}")
        context = await self.enrich_context(user_id, conversation_type)
        system_prompt = build_chat_system_prompt(context, conversation_type)

        response = await self._client.generate(
            model=self._model,
            max_output_tokens=GREETING_MAX_TOKENS,
            system_prompt=system_prompt,
            transcript=[{"role": "user", "content": GREETING_PROMPT}],
        )
        opening = "\n".join(
            b["text"] for b in response.content_blocks if b.get("type") == "text"
        )

        async with self._session_factory() as session:
            row = await ConversationSessionRepository(session).create(
                system_prompt=system_prompt,
                user_id=user_id,
                conversation_type=conversation_type,
                messages=[{"role": "assistant", "content": opening}],
                context=context,
            )
            await session.commit()

        logger.info(f"Session {row.id} created")
        return row.id, opening

    async def get_session(self, session_id: str) -> ConversationSessionModel:
        async with self._session_factory() as session:
            row = await ConversationSessionRepository(session).get(session_id)
        if row is None:
            raise SessionNotFoundError(session_id)
        return row

    async def list_sessions(
        self, user_id: str | None = None, limit: int = 20
    ) -> list[dict[str, Any]]:
        """Recent sessions with a preview of their opening message."""
        async with self._session_factory() as session:
            rows = await ConversationSessionRepository(session).list_for_user(user_id, limit)
        sessions = []
        for row in rows:
            first = (row.messages or [{}])[0].get("content")
            sessions.append(
                {
                    "session_id": row.id,
                    "conversation_type": row.conversation_type,
                    "first_message": first[:100] if isinstance(first, str) else "",
                    "status": row.status.value,
                    "summary": row.summary,
                    "created_at": row.created_at.isoformat(),
                }
            )
        return sessions

    async def send_message(self, session_id: str, text: str) -> ChatReply:
        """Run one user turn through the conversation loop with every tool.

        Raises:
            SessionNotFoundError: Unknown session
            SessionClosedError: Session already completed
        """
        row = await self.get_session(session_id)
        if row.status == SessionStatus.COMPLETED:
            raise SessionClosedError(f"Session {session_id} is completed")

        logger.info(f"Processing message in session {session_id}")
        messages = list(row.messages or []) + [{"role": "user", "content": text}]

        result = await self._conversation.run(
            system_prompt=row.system_prompt,
            messages=messages,
            context=self._tool_context(session_id),
            model=self._model,
            label=f"session {session_id}",
        )

        status = SessionStatus.COMPLETED if result.session_complete else row.status
        async with self._session_factory() as session:
            await ConversationSessionRepository(session).save_transcript(
                session_id, result.messages, status
            )
            await session.commit()

        return ChatReply(
            message=result.content,
            tool_calls=[call.name for call in result.tool_calls],
            session_complete=result.session_complete,
        )

    async def start_voice_session(
        self, user_id: str | None, conversation_type: str = "general"
    ) -> dict[str, Any]:
        """Create a voice session and everything the browser needs to run it."""
        logger.info(f"Starting {conversation_type} voice session for user {user_id}")
        context = await self.enrich_context(user_id, conversation_type)
        system_prompt = build_voice_system_prompt(context, conversation_type)
        tools = self._conversation.registry.function_declarations()

        credentials: dict[str, Any] = {"client_secret": None, "expires_at": None}
        if self._realtime is not None and self._realtime.configured:
            credentials = await self._realtime.create_session()

        async with self._session_factory() as session:
            row = await ConversationSessionRepository(session).create(
                system_prompt=system_prompt,
                user_id=user_id,
                conversation_type=conversation_type,
                context=context,
                status=SessionStatus.VOICE_ACTIVE,
            )
            await session.commit()

        logger.info(f"Voice session created: {row.id}")
        return {
            "session_id": row.id,
            "system_prompt": system_prompt,
            "tools": tools,
            **credentials,
        }

    async def execute_voice_tool(
        self, session_id: str, tool_name: str, tool_input: dict[str, Any] | None
    ) -> dict[str, Any]:
        """Run a tool the realtime model invoked during a voice session."""
        row = await self.get_session(session_id)
        if row.status == SessionStatus.COMPLETED:
            raise SessionClosedError(f"Session {session_id} is completed")

        logger.info(f"Executing voice tool {tool_name} for session {session_id}")
        outcome = await self._conversation.registry.dispatch(
            tool_name, tool_input, self._tool_context(session_id)
        )
        if outcome.session_complete:
            async with self._session_factory() as session:
                await ConversationSessionRepository(session).set_status(
                    session_id, SessionStatus.COMPLETED
                )
                await session.commit()

        return {"result": outcome.result, "session_complete": outcome.session_complete}

    async def end_voice_session(
        self,
        session_id: str,
        transcript: str = "",
        tools_used: int = 0,
        duration: int = 0,
    ) -> dict[str, Any]:
        """Store the final voice transcript and close the session."""
        await self.get_session(session_id)

        tokens, cost = estimate_voice_cost(transcript)
        summary = voice_summary(duration, tools_used)
        messages = parse_transcript(transcript)

        async with self._session_factory() as session:
            repo = ConversationSessionRepository(session)
            await repo.save_transcript(session_id, messages, SessionStatus.COMPLETED)
            await repo.set_summary(session_id, summary)
            await session.commit()

        logger.info(f"Voice session {session_id} completed. Estimated cost: ${cost:.4f} ({tokens} tokens)")
        return {
            "summary": summary,
            "actions_executed": tools_used,
            "estimated_tokens": tokens,
            "estimated_cost": round(cost, 4),
        }
