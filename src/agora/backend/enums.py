"""Enumeration types for backend"""
from enum import Enum


class CodeKind(str, Enum):
    """Verification code kind

    OTP proves email ownership at signup, RESET authorises a password reset.
    """
    OTP = "OTP"
    RESET = "RESET"


class Gender(str, Enum):
    """User gender"""
    MALE = "MALE"
    FEMALE = "FEMALE"


class BroadcastEvent(str, Enum):
    """Events pushed to connected sockets"""
    NEW_MESSAGE = "newMessage"
    ERROR = "error"
