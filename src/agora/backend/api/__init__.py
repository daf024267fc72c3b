"""
API package for REST and WebSocket endpoints.
"""

from .auth import router as auth_router
from .conversation import router as conversation_router
from .message import router as message_router
from .websocket import router as websocket_router

__all__ = [
    "auth_router",
    "conversation_router",
    "message_router",
    "websocket_router",
]
