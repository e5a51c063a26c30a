"""Steward FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI

from steward.config import Settings
from steward.db import create_engine, create_session_factory
from steward.db.models import Base
from steward.routes import (
    chat_router,
    escalations_router,
    health_router,
    queue_router,
    reports_router,
    scheduler_router,
    voice_router,
)
from steward.services.chat import ChatService
from steward.services.conversation import ConversationLoop
from steward.services.cron import TimerRegistry
from steward.services.email import EmailRenderer, EmailService
from steward.services.llm import LiteLLMClient
from steward.services.notifications import NotificationDispatcher
from steward.services.scheduler import SchedulerService
from steward.services.voice import RealtimeSessionClient
from steward.tools import build_default_registry

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or Settings()

    engine = create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        echo=settings.db_echo,
        statement_timeout=settings.db_statement_timeout,
        command_timeout=settings.db_command_timeout,
    )
    session_factory = create_session_factory(engine)
    logger.info(f"Database connection configured: {settings.database_url.split('@')[-1]}")

    # Model access and tools
    client = LiteLLMClient(api_key=settings.llm_api_key, timeout=settings.llm_timeout)
    registry = build_default_registry()
    conversation = ConversationLoop(
        client,
        registry,
        default_model=settings.default_model,
        max_rounds=settings.max_conversation_rounds,
        max_output_tokens=settings.max_output_tokens,
    )

    # Notifications
    email = EmailService(
        api_key=settings.resend_api_key,
        from_email=settings.from_email,
        to_email=settings.operator_email,
        from_name=settings.from_name,
        api_url=settings.resend_api_url,
    )
    notifier = NotificationDispatcher(
        session_factory, email, renderer=EmailRenderer(app_name=settings.from_name)
    )

    scheduler = SchedulerService(
        session_factory,
        conversation,
        TimerRegistry(),
        notifier=notifier,
        reload_interval=settings.scheduler_reload_interval,
        digest_task_name=settings.digest_task_name,
    )

    chat_service = ChatService(
        session_factory,
        conversation,
        client,
        model=settings.default_model,
        realtime=RealtimeSessionClient(
            api_key=settings.openai_api_key,
            model=settings.realtime_model,
            voice=settings.realtime_voice,
        ),
        reload_scheduler=scheduler.reload,
        notifier=notifier,
        operator_email=settings.operator_email,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info("Steward starting up")

        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created/verified")
        except Exception as e:
            logger.error(f"Database initialization error: {e}")

        if settings.scheduler_enabled:
            await scheduler.start()
        else:
            logger.info("Scheduler disabled by configuration")

        yield

        await scheduler.stop()
        await engine.dispose()
        logger.info("Database connection closed")
        logger.info("Steward shutting down")

    steward_app = FastAPI(
        title="Steward",
        description="Always-on AI operations agent",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store services in app.state for dependency injection
    steward_app.state.settings = settings
    steward_app.state.session_factory = session_factory
    steward_app.state.scheduler = scheduler
    steward_app.state.chat_service = chat_service
    steward_app.state.notifier = notifier

    steward_app.include_router(health_router)
    steward_app.include_router(chat_router)
    steward_app.include_router(voice_router)
    steward_app.include_router(scheduler_router)
    steward_app.include_router(reports_router)
    steward_app.include_router(escalations_router)
    steward_app.include_router(queue_router)

    return steward_app
