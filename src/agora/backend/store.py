"""Credential store: persistence operations used by the services

All methods work on one AsyncSession and flush instead of committing; the
owner of the session (request dependency, CLI, test fixture) decides when to
commit. No method takes locks, so multi-step flows built on top of it are
only atomic per row.
"""
import logging
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from sqlalchemy import and_, delete, event, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from .enums import CodeKind
from .model import Conversation, Message, User, VerificationCode, normalize_pair

logger = logging.getLogger(__name__)

COMMIT_CALLBACKS = "agora_on_commit"


@event.listens_for(Session, "after_commit")
def _run_commit_callbacks(session: Session) -> None:
    for callback in session.info.pop(COMMIT_CALLBACKS, []):
        try:
            callback()
        except Exception:
            logger.exception("Commit callback failed")


@event.listens_for(Session, "after_soft_rollback")
def _drop_commit_callbacks(session: Session, previous_transaction) -> None:
    dropped = session.info.pop(COMMIT_CALLBACKS, None)
    if dropped:
        logger.debug(f"Dropped {len(dropped)} commit callback(s) on rollback")


class CredentialStore:
    """Async repository over users, verification codes, conversations and messages"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def rollback(self) -> None:
        await self.session.rollback()

    def on_commit(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` once the current transaction commits; dropped on rollback"""
        self.session.info.setdefault(COMMIT_CALLBACKS, []).append(callback)

    # ==================== Users ====================

    async def find_user_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def find_user_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def find_user_by_provider_id(self, provider_id: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.provider_id == provider_id))
        return result.scalar_one_or_none()

    async def find_users_by_ids(self, user_ids: Iterable[int]) -> dict[int, User]:
        ids = set(user_ids)
        if not ids:
            return {}
        result = await self.session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def create_user(self, **fields) -> User:
        user = User(**fields)
        self.session.add(user)
        await self.session.flush()
        logger.debug(f"Created user row id={user.id}")
        return user

    async def update_user(self, user: User, **changes) -> User:
        for name, value in changes.items():
            setattr(user, name, value)
        user.touch()
        self.session.add(user)
        await self.session.flush()
        return user

    # ==================== Verification codes ====================

    async def create_code(
        self,
        user_id: int,
        kind: CodeKind,
        code: str,
        expires_at: datetime,
    ) -> VerificationCode:
        verification = VerificationCode(
            user_id=user_id,
            kind=kind,
            code=code,
            expires_at=expires_at,
        )
        self.session.add(verification)
        await self.session.flush()
        return verification

    async def find_code_by_user(self, user_id: int, kind: CodeKind) -> Optional[VerificationCode]:
        """Most recent code of the given kind for the user"""
        stmt = (
            select(VerificationCode)
            .where(
                VerificationCode.user_id == user_id,
                VerificationCode.kind == kind,
            )
            .order_by(VerificationCode.created_at.desc(), VerificationCode.id.desc())
            .limit(1)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def delete_codes_by_user_and_kind(self, user_id: int, kind: CodeKind) -> int:
        result = await self.session.execute(
            delete(VerificationCode).where(
                VerificationCode.user_id == user_id,
                VerificationCode.kind == kind,
            )
        )
        await self.session.flush()
        return result.rowcount or 0

    # ==================== Conversations ====================

    async def find_conversation_by_participants(
        self, first_id: int, second_id: int
    ) -> Optional[Conversation]:
        user_a_id, user_b_id = normalize_pair(first_id, second_id)
        stmt = select(Conversation).where(
            Conversation.user_a_id == user_a_id,
            Conversation.user_b_id == user_b_id,
        )
        result = await self.session.execute(stmt)
        return result.scalars().first()

    async def find_conversation_by_id(self, conversation_id: int) -> Optional[Conversation]:
        result = await self.session.execute(
            select(Conversation).where(Conversation.id == conversation_id)
        )
        return result.scalar_one_or_none()

    async def find_conversations_for_user(self, user_id: int) -> Sequence[Conversation]:
        stmt = (
            select(Conversation)
            .where(or_(Conversation.user_a_id == user_id, Conversation.user_b_id == user_id))
            .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_conversation(self, first_id: int, second_id: int) -> Conversation:
        """Insert a conversation; raises IntegrityError if the pair already has one"""
        user_a_id, user_b_id = normalize_pair(first_id, second_id)
        conversation = Conversation(user_a_id=user_a_id, user_b_id=user_b_id)
        self.session.add(conversation)
        await self.session.flush()
        return conversation

    async def update_conversation(self, conversation: Conversation, **changes) -> Conversation:
        for name, value in changes.items():
            setattr(conversation, name, value)
        conversation.touch()
        self.session.add(conversation)
        await self.session.flush()
        return conversation

    async def delete_conversation(self, conversation: Conversation) -> None:
        """Delete a conversation together with its messages"""
        await self.session.execute(
            delete(Message).where(Message.conversation_id == conversation.id)
        )
        await self.session.delete(conversation)
        await self.session.flush()

    # ==================== Messages ====================

    async def create_message(
        self,
        conversation_id: int,
        sender_id: int,
        content: str,
        image: Optional[str] = None,
    ) -> Message:
        message = Message(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            image=image,
        )
        self.session.add(message)
        await self.session.flush()
        return message

    async def find_message_by_id(self, message_id: int) -> Optional[Message]:
        result = await self.session.execute(select(Message).where(Message.id == message_id))
        return result.scalar_one_or_none()

    async def find_messages_page(
        self,
        conversation_id: int,
        limit: int,
        cursor: Optional[Message] = None,
    ) -> Sequence[Message]:
        """Newest-first page of messages, strictly after ``cursor`` when given"""
        stmt = select(Message).where(Message.conversation_id == conversation_id)
        if cursor is not None:
            stmt = stmt.where(
                or_(
                    Message.created_at < cursor.created_at,
                    and_(Message.created_at == cursor.created_at, Message.id < cursor.id),
                )
            )
        stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def find_messages_for_conversations(
        self, conversation_ids: Iterable[int]
    ) -> dict[int, list[Message]]:
        """All messages of the given conversations, oldest first, grouped by conversation"""
        ids = set(conversation_ids)
        grouped: dict[int, list[Message]] = {conversation_id: [] for conversation_id in ids}
        if not ids:
            return grouped
        stmt = (
            select(Message)
            .where(Message.conversation_id.in_(ids))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        result = await self.session.execute(stmt)
        for message in result.scalars().all():
            grouped[message.conversation_id].append(message)
        return grouped

    async def delete_message(self, message: Message) -> None:
        await self.session.delete(message)
        await self.session.flush()
