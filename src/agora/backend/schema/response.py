"""
Response envelopes shared by every HTTP endpoint.

- SuccessResponse[T]: ``{"success": true, "message": ..., "data": T}``
- ErrorResponse: ``{"success": false, "message": ..., "data": null, "error": {"code": ...}}``

The status code carries the error class; ``error.code`` tells clients which
business rule was hit (see ``agora.backend.exception``).
"""

from typing import TypeVar, Generic, Optional
from pydantic import BaseModel, Field


T = TypeVar('T')


class BaseResponse(BaseModel):
    success: bool = Field(..., description="False only for error envelopes")
    message: Optional[str] = Field(None, description="Human-readable note, e.g. 'Reset link sent'")


class SuccessResponse(BaseResponse, Generic[T]):
    """Envelope for a successful call, e.g. SuccessResponse[TokenPair]"""

    success: bool = Field(True)
    data: T = Field(..., description="Payload")


class ErrorResponse(BaseResponse):
    """Envelope built by the exception handlers in ``app.py``"""

    success: bool = Field(False)
    data: None = Field(None)
    error: Optional[dict] = Field(
        None,
        description="Error code, plus request validation details for VALIDATION_ERROR",
        examples=[
            {"code": "EMAIL_NOT_VERIFIED"},
            {"code": "VALIDATION_ERROR", "details": [{"loc": ["body", "email"], "msg": "...", "type": "value_error"}]}
        ]
    )
