"""Conversation and message schemas"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from .auth import UserOut


# ==================== Request Schemas ====================

class CreateConversationRequest(BaseModel):
    """Open (or reuse) the conversation with another user"""

    user_id: int = Field(..., ge=1, description="The other participant")


class CreateMessageRequest(BaseModel):
    """Post a message"""

    conversation_id: int = Field(..., ge=1)
    content: str = Field(..., min_length=1)
    image: Optional[str] = Field(None, max_length=512)


class RemoveMessageRequest(BaseModel):
    """Delete a message; both ids are checked to exist"""

    message_id: Optional[int] = None
    conversation_id: Optional[int] = None


# ==================== Response Schemas ====================

class MessageOut(BaseModel):
    """Response schema for message data"""

    id: int = Field(..., description="Message id, also the pagination cursor")
    conversation_id: int
    sender_id: int
    content: str
    image: Optional[str] = None
    created_at: datetime
    sender: Optional[UserOut] = None

    class Config:
        from_attributes = True


class MessagePage(BaseModel):
    """Cursor pagination envelope: newest first"""

    data: list[MessageOut]
    next_cursor: Optional[int] = Field(
        None, description="Pass as ``cursor`` to get the next page; null at end of history"
    )


class ConversationOut(BaseModel):
    """Conversation with participants and message history"""

    id: int
    participant_ids: list[int]
    last_message_at: datetime
    created_at: datetime
    users: list[UserOut] = Field(default_factory=list)
    messages: list[MessageOut] = Field(default_factory=list)
