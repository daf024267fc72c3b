"""Message API endpoints"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from ..dep import get_current_user, get_message_service
from ..model import User
from ..schema.response import SuccessResponse
from ..schema.conversation import (
    CreateMessageRequest,
    MessageOut,
    MessagePage,
    RemoveMessageRequest,
)
from ..service import MessageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["Messages"])


# ==================== Type Aliases ====================

MessageServiceDep = Annotated[MessageService, Depends(get_message_service)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.get(
    "/{conversation_id}",
    response_model=SuccessResponse[MessagePage],
    summary="Message history",
    description="""
    Newest first, 10 per page. Pass the returned `next_cursor` as `cursor`
    to get the following page; `next_cursor` is null on the last page.

    **Errors:**
    - 403 FORBIDDEN: Not a participant of the conversation
    - 404 NOT_FOUND: Conversation or cursor message does not exist
    """
)
async def list_messages(
    conversation_id: int,
    messages: MessageServiceDep,
    current_user: CurrentUserDep,
    cursor: Optional[int] = Query(None, ge=1, description="Id of the last message already seen"),
):
    page = await messages.list_messages(conversation_id, current_user.id, cursor)
    return SuccessResponse(data=page, message=None)


@router.post("", response_model=SuccessResponse[MessageOut])
async def create_message(
    request: CreateMessageRequest,
    messages: MessageServiceDep,
    current_user: CurrentUserDep,
):
    message = await messages.post_message(
        current_user.id,
        request.conversation_id,
        request.content,
        request.image,
    )
    return SuccessResponse(data=message, message=None)


@router.delete("", response_model=SuccessResponse[None])
async def delete_message(
    request: RemoveMessageRequest,
    messages: MessageServiceDep,
    current_user: CurrentUserDep,
):
    await messages.remove_message(current_user.id, request.message_id, request.conversation_id)
    return SuccessResponse(data=None, message="Message deleted")
