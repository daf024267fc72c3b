"""
Schema package for API request/response models.
"""

from .response import (
    BaseResponse,
    SuccessResponse,
    ErrorResponse,
)
from .auth import (
    RegisterRequest,
    OtpRequest,
    EmailRequest,
    LoginRequest,
    ResetPasswordRequest,
    UserOut,
    TokenPair,
    AuthorizationUrlOut,
)
from .conversation import (
    CreateConversationRequest,
    CreateMessageRequest,
    RemoveMessageRequest,
    MessageOut,
    MessagePage,
    ConversationOut,
)

__all__ = [
    # Response schemas
    "BaseResponse",
    "SuccessResponse",
    "ErrorResponse",
    # Auth schemas
    "RegisterRequest",
    "OtpRequest",
    "EmailRequest",
    "LoginRequest",
    "ResetPasswordRequest",
    "UserOut",
    "TokenPair",
    "AuthorizationUrlOut",
    # Conversation schemas
    "CreateConversationRequest",
    "CreateMessageRequest",
    "RemoveMessageRequest",
    "MessageOut",
    "MessagePage",
    "ConversationOut",
]
