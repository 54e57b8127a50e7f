"""
API Routers
===========
FastAPI routers for the Optima AI backend.
"""

from .auth import router as auth_router
from .chat import router as chat_router
from .documents import router as documents_router
from .system import router as system_router
from .video import router as video_router

__all__ = ["auth_router", "chat_router", "documents_router", "system_router", "video_router"]
