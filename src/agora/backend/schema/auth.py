"""Authentication-related schemas for API input/output"""

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, EmailStr, field_validator
import re

from ..enums import Gender


# ==================== Input Schemas ====================

class RegisterRequest(BaseModel):
    """User registration request"""

    name: str = Field(..., min_length=1, max_length=100, examples=["Alice"])
    email: EmailStr = Field(..., examples=["alice@example.com"])
    password: str = Field(
        ...,
        min_length=6,
        description="Password (at least 6 characters)",
        examples=["Secret1"]
    )
    birth: date = Field(..., examples=["1999-04-01"])
    gender: Gender = Field(..., description="MALE or FEMALE")


class OtpRequest(BaseModel):
    """Email verification with the code sent at signup"""

    email: EmailStr
    otp: str = Field(..., min_length=6, max_length=6, examples=["123456"])

    @field_validator('otp')
    @classmethod
    def validate_otp(cls, v: str) -> str:
        if not re.match(r'^\d+$', v):
            raise ValueError('OTP must be digits only')
        return v


class EmailRequest(BaseModel):
    """Request carrying only an email (resend OTP, request password reset)"""

    email: EmailStr


class LoginRequest(BaseModel):
    """User login request"""

    email: EmailStr = Field(..., examples=["alice@example.com"])
    password: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    """Password reset with the token received by mail"""

    reset_token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)
    confirm_new_password: str = Field(..., min_length=6)


# ==================== Output Schemas ====================

class UserOut(BaseModel):
    """User output schema (safe for API responses, excludes secrets)"""

    id: int = Field(..., description="User ID")
    email: str = Field(..., description="Email address")
    name: str = Field(..., description="Display name")
    birth: Optional[date] = None
    gender: Optional[Gender] = None
    profile_image: Optional[str] = None
    is_verified: bool = Field(..., description="Whether the email is verified")
    created_at: datetime = Field(..., description="Account creation time")

    class Config:
        from_attributes = True


class TokenPair(BaseModel):
    """Access/refresh token pair returned by every successful sign-in"""

    access_token: str = Field(..., description="Short-lived JWT")
    refresh_token: str = Field(..., description="Long-lived JWT, only the latest one is accepted")
    token_type: str = Field(default="bearer")


class AuthorizationUrlOut(BaseModel):
    """Provider consent URL"""

    url: str
