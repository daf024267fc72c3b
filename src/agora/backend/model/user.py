"""User-related data models"""
from datetime import date, datetime
from typing import Optional
from sqlmodel import Field
from .base import BaseModel
from ..enums import CodeKind, Gender


class User(BaseModel, table=True):
    """User table"""

    __tablename__ = "users"

    email: str = Field(index=True, unique=True, max_length=255)
    # None for accounts created through OAuth only
    hashed_password: Optional[str] = Field(default=None, max_length=255)

    # Profile
    name: str = Field(default="", max_length=100)
    birth: Optional[date] = Field(default=None)
    gender: Optional[Gender] = Field(default=None)
    profile_image: Optional[str] = Field(default=None, max_length=512)

    # External identity provider subject (Google "sub")
    provider_id: Optional[str] = Field(default=None, unique=True, max_length=255)

    is_verified: bool = Field(default=False)  # Email verified

    # Hash of the only refresh token currently accepted for this user
    refresh_token_hash: Optional[str] = Field(default=None, max_length=255)

    @property
    def is_oauth_only(self) -> bool:
        return self.hashed_password is None


class VerificationCode(BaseModel, table=True):
    """One-time code table (signup OTP and password reset)"""

    __tablename__ = "verification_codes"

    user_id: int = Field(foreign_key="users.id", index=True)
    kind: CodeKind = Field(index=True)
    # bcrypt hash for OTP, signed reset token for RESET
    code: str = Field(max_length=1024)
    expires_at: datetime = Field(nullable=False)

    def is_expired(self, now: datetime) -> bool:
        """Expired once the expiry instant has been reached"""
        return self.expires_at <= now
