"""FastAPI dependency injection providers for services."""

from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

if TYPE_CHECKING:
    from steward.services.chat import ChatService
    from steward.services.scheduler import SchedulerService


def get_chat_service(request: Request) -> "ChatService":
    """Get the chat service from app state."""
    return request.app.state.chat_service


def get_scheduler(request: Request) -> "SchedulerService":
    """Get the scheduler service from app state."""
    return request.app.state.scheduler


async def get_db_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Open a read session from the app's session factory for one request."""
    async with request.app.state.session_factory() as session:
        yield session


ChatServiceDep = Annotated["ChatService", Depends(get_chat_service)]
SchedulerDep = Annotated["SchedulerService", Depends(get_scheduler)]
DbSessionDep = Annotated[AsyncSession, Depends(get_db_session)]
