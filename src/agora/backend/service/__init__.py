"""Service layer"""
from .token_service import TokenService
from .auth_service import AuthService
from .conversation_service import ConversationService
from .message_service import MessageService, PAGE_SIZE

__all__ = [
    "TokenService",
    "AuthService",
    "ConversationService",
    "MessageService",
    "PAGE_SIZE",
]
