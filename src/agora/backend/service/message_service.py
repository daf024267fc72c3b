"""Message stream: cursor-paginated history and real-time fan-out"""
import logging
from typing import Literal, Optional

from ..enums import BroadcastEvent
from ..exception import ForbiddenError, NotFoundError, ValidationError
from ..model import Conversation
from ..schema.auth import UserOut
from ..schema.conversation import MessageOut, MessagePage
from ..store import CredentialStore
from ..websocket import BroadcastHub
from .conversation_service import to_message_out

logger = logging.getLogger(__name__)

PAGE_SIZE = 10


class MessageService:
    """
    Reads and writes messages of a conversation; only its two participants
    may do either.

    New messages are pushed to the hub as ``newMessage`` events after commit. With
    ``scope="global"`` every connected socket receives every message; with
    ``scope="conversation"`` only sockets joined to the conversation room do.
    """

    def __init__(
        self,
        store: CredentialStore,
        hub: BroadcastHub,
        scope: Literal["global", "conversation"] = "global",
    ):
        self.store = store
        self.hub = hub
        self.scope = scope

    async def _get_conversation_for(self, conversation_id: int, requester_id: int) -> Conversation:
        conversation = await self.store.find_conversation_by_id(conversation_id)
        if conversation is None:
            raise NotFoundError("No conversation found")
        if not conversation.has_participant(requester_id):
            logger.warning(f"User {requester_id} denied access to conversation {conversation_id}")
            raise ForbiddenError("Not a participant of this conversation")
        return conversation

    async def list_messages(
        self,
        conversation_id: int,
        requester_id: int,
        cursor: Optional[int] = None,
    ) -> MessagePage:
        """
        One page of history, newest first.

        Without a cursor, the latest PAGE_SIZE messages; with a cursor (a
        message id), the PAGE_SIZE messages strictly after it in the same
        order. ``next_cursor`` is the last id of a full page, None otherwise.

        Raises:
            NotFoundError: Conversation, or cursor message in it, does not exist
            ForbiddenError: Requester is not a participant
        """
        await self._get_conversation_for(conversation_id, requester_id)

        cursor_message = None
        if cursor is not None:
            cursor_message = await self.store.find_message_by_id(cursor)
            if cursor_message is None or cursor_message.conversation_id != conversation_id:
                raise NotFoundError("Cursor message not found")

        messages = await self.store.find_messages_page(conversation_id, PAGE_SIZE, cursor_message)
        senders = await self.store.find_users_by_ids(m.sender_id for m in messages)

        data = [
            to_message_out(
                m,
                UserOut.model_validate(senders[m.sender_id]) if m.sender_id in senders else None,
            )
            for m in messages
        ]
        next_cursor = data[-1].id if len(data) == PAGE_SIZE else None

        logger.debug(
            f"Listed {len(data)} messages of conversation {conversation_id} "
            f"(cursor={cursor}, next={next_cursor})"
        )
        return MessagePage(data=data, next_cursor=next_cursor)

    async def post_message(
        self,
        sender_id: int,
        conversation_id: int,
        content: str,
        image: Optional[str] = None,
    ) -> MessageOut:
        """
        Persist a message and schedule its broadcast.

        The ``newMessage`` event is queued on the session and only emitted
        once the caller commits; a rollback drops it.

        Raises:
            ValidationError: Empty content
            NotFoundError: Conversation does not exist
            ForbiddenError: Sender is not a participant
        """
        if not content:
            raise ValidationError("Content is required")

        conversation = await self._get_conversation_for(conversation_id, sender_id)

        message = await self.store.create_message(conversation_id, sender_id, content, image)
        await self.store.update_conversation(conversation, last_message_at=message.created_at)

        sender = await self.store.find_user_by_id(sender_id)
        out = to_message_out(message, UserOut.model_validate(sender) if sender else None)

        room = BroadcastHub.conversation_room(conversation_id) if self.scope == "conversation" else None
        payload = out.model_dump(mode="json")
        self.store.on_commit(
            lambda: self.hub.emit(BroadcastEvent.NEW_MESSAGE.value, payload, room=room)
        )

        logger.info(f"Message {message.id} posted to conversation {conversation_id}")
        return out

    async def remove_message(
        self,
        requester_id: int,
        message_id: Optional[int],
        conversation_id: Optional[int],
    ) -> None:
        """
        Delete a message.

        Raises:
            ValidationError: Either id missing
            NotFoundError: Message or conversation missing, or message in another conversation
            ForbiddenError: Requester is not a participant of the conversation
        """
        if not message_id:
            raise ValidationError("MessageId is required")
        if not conversation_id:
            raise ValidationError("ConversationId is required")

        message = await self.store.find_message_by_id(message_id)
        if message is None:
            raise NotFoundError("No message found")

        await self._get_conversation_for(conversation_id, requester_id)

        if message.conversation_id != conversation_id:
            raise NotFoundError("No message found in this conversation")

        await self.store.delete_message(message)
        logger.info(f"Deleted message {message_id} from conversation {conversation_id}")
