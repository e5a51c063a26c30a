from .chat import router as chat_router
from .escalations import router as escalations_router
from .health import router as health_router
from .queue import router as queue_router
from .reports import router as reports_router
from .scheduler import router as scheduler_router
from .voice import router as voice_router

__all__ = [
    "chat_router",
    "escalations_router",
    "health_router",
    "queue_router",
    "reports_router",
    "scheduler_router",
    "voice_router",
]
