"""Conversation registry: two-party conversations and their lifecycle"""
import logging
from typing import Sequence

from sqlalchemy.exc import IntegrityError

from ..exception import ForbiddenError, NotFoundError
from ..model import Conversation, Message
from ..schema.auth import UserOut
from ..schema.conversation import ConversationOut, MessageOut
from ..store import CredentialStore

logger = logging.getLogger(__name__)


class ConversationService:
    """Find-or-create, listing and deletion of conversations"""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def find_or_create(self, requester_id: int, target_id: int) -> Conversation:
        """
        Return the conversation between the two users, creating it if needed.

        The pair is order independent: (A, B) and (B, A) resolve to the same
        row. Lookup and insert are separate steps; if a concurrent request
        wins the insert, the unique pair constraint rejects ours and the
        winner's row is returned instead.

        Raises:
            ForbiddenError: requester_id == target_id
            NotFoundError: Target user does not exist
        """
        if requester_id == target_id:
            logger.warning(f"User {requester_id} tried to open a conversation with themself")
            raise ForbiddenError("Cannot start a conversation with yourself")

        if await self.store.find_user_by_id(target_id) is None:
            raise NotFoundError("User not found")

        existing = await self.store.find_conversation_by_participants(requester_id, target_id)
        if existing is not None:
            return existing

        try:
            conversation = await self.store.create_conversation(requester_id, target_id)
        except IntegrityError:
            logger.info(
                f"Conversation for ({requester_id}, {target_id}) created concurrently, reusing it"
            )
            await self.store.rollback()
            conversation = await self.store.find_conversation_by_participants(requester_id, target_id)
            if conversation is None:
                raise
            return conversation

        logger.info(
            f"Created conversation {conversation.id} between {requester_id} and {target_id}"
        )
        return conversation

    async def list_for_user(self, user_id: int) -> list[ConversationOut]:
        """All conversations of the user, most recently active first, fully loaded"""
        conversations = await self.store.find_conversations_for_user(user_id)
        return await self._attach(conversations)

    async def get_by_id(self, conversation_id: int) -> Conversation:
        conversation = await self.store.find_conversation_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversation not found")
        return conversation

    async def get_detail(self, conversation_id: int, requester_id: int) -> ConversationOut:
        """
        Conversation with participants and history, for one of its participants.

        Raises:
            NotFoundError: Conversation does not exist
            ForbiddenError: Requester is not a participant
        """
        conversation = await self.get_by_id(conversation_id)
        if not conversation.has_participant(requester_id):
            logger.warning(f"User {requester_id} tried to read conversation {conversation_id}")
            raise ForbiddenError("Not a participant of this conversation")
        details = await self._attach([conversation])
        return details[0]

    async def remove(self, conversation_id: int, requester_id: int) -> None:
        """
        Delete a conversation and its messages.

        Raises:
            NotFoundError: Conversation does not exist
            ForbiddenError: Requester is not a participant
        """
        conversation = await self.get_by_id(conversation_id)
        if not conversation.has_participant(requester_id):
            logger.warning(
                f"User {requester_id} tried to delete conversation {conversation_id}"
            )
            raise ForbiddenError("Not a participant of this conversation")

        await self.store.delete_conversation(conversation)
        logger.info(f"Deleted conversation {conversation_id}")

    async def _attach(self, conversations: Sequence[Conversation]) -> list[ConversationOut]:
        """Eagerly load participants and message history (with senders)"""
        if not conversations:
            return []

        messages_by_conversation = await self.store.find_messages_for_conversations(
            c.id for c in conversations
        )
        user_ids = {uid for c in conversations for uid in c.participant_ids}
        user_ids.update(
            m.sender_id for messages in messages_by_conversation.values() for m in messages
        )
        users = {
            uid: UserOut.model_validate(user)
            for uid, user in (await self.store.find_users_by_ids(user_ids)).items()
        }

        return [
            ConversationOut(
                id=c.id,
                participant_ids=c.participant_ids,
                last_message_at=c.last_message_at,
                created_at=c.created_at,
                users=[users[uid] for uid in c.participant_ids if uid in users],
                messages=[
                    to_message_out(m, users.get(m.sender_id))
                    for m in messages_by_conversation.get(c.id, [])
                ],
            )
            for c in conversations
        ]


def to_message_out(message: Message, sender: UserOut | None = None) -> MessageOut:
    return MessageOut(
        id=message.id,
        conversation_id=message.conversation_id,
        sender_id=message.sender_id,
        content=message.content,
        image=message.image,
        created_at=message.created_at,
        sender=sender,
    )
