"""Conversation and message models"""
from datetime import datetime
from typing import Optional
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, Column, Text
from .base import BaseModel, utc_now


def normalize_pair(first_id: int, second_id: int) -> tuple[int, int]:
    """Order-independent participant key: (smaller id, larger id)"""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


class Conversation(BaseModel, table=True):
    """
    Two-party conversation.

    Participants are stored as a normalized pair (user_a_id < user_b_id) so
    that the unique constraint rejects a second conversation for the same
    unordered pair.
    """

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_conversations_pair"),
    )

    user_a_id: int = Field(foreign_key="users.id", index=True)
    user_b_id: int = Field(foreign_key="users.id", index=True)
    last_message_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        index=True,
    )

    @property
    def participant_ids(self) -> list[int]:
        return [self.user_a_id, self.user_b_id]

    def has_participant(self, user_id: int) -> bool:
        return user_id in (self.user_a_id, self.user_b_id)


class Message(BaseModel, table=True):
    """
    Message in a conversation.

    The integer primary key grows with insertion order and doubles as the
    pagination cursor.
    """

    __tablename__ = "messages"

    conversation_id: int = Field(foreign_key="conversations.id", index=True)
    sender_id: int = Field(foreign_key="users.id", index=True)
    content: str = Field(sa_column=Column(Text, nullable=False))
    image: Optional[str] = Field(default=None, max_length=512)
