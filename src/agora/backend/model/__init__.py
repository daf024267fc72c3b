"""Data models"""
from .base import BaseModel, utc_now
from .user import User, VerificationCode
from .conversation import Conversation, Message, normalize_pair

__all__ = [
    "BaseModel",
    "utc_now",
    "User",
    "VerificationCode",
    "Conversation",
    "Message",
    "normalize_pair",
]
