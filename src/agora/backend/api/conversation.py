"""Conversation API endpoints"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends

from ..dep import get_conversation_service, get_current_user
from ..model import User
from ..schema.response import SuccessResponse
from ..schema.conversation import ConversationOut, CreateConversationRequest
from ..service import ConversationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["Conversations"])


# ==================== Type Aliases ====================

ConversationServiceDep = Annotated[ConversationService, Depends(get_conversation_service)]
CurrentUserDep = Annotated[User, Depends(get_current_user)]


@router.post(
    "",
    response_model=SuccessResponse[ConversationOut],
    summary="Open a conversation",
    description="Return the existing conversation with the user, or create it.",
)
async def create_conversation(
    request: CreateConversationRequest,
    conversations: ConversationServiceDep,
    current_user: CurrentUserDep,
):
    conversation = await conversations.find_or_create(current_user.id, request.user_id)
    detail = await conversations.get_detail(conversation.id, current_user.id)
    return SuccessResponse(data=detail, message=None)


@router.get("", response_model=SuccessResponse[list[ConversationOut]])
async def list_conversations(
    conversations: ConversationServiceDep,
    current_user: CurrentUserDep,
):
    data = await conversations.list_for_user(current_user.id)
    return SuccessResponse(data=data, message=None)


@router.get("/{conversation_id}", response_model=SuccessResponse[ConversationOut])
async def get_conversation(
    conversation_id: int,
    conversations: ConversationServiceDep,
    current_user: CurrentUserDep,
):
    detail = await conversations.get_detail(conversation_id, current_user.id)
    return SuccessResponse(data=detail, message=None)


@router.delete("/{conversation_id}", response_model=SuccessResponse[None])
async def delete_conversation(
    conversation_id: int,
    conversations: ConversationServiceDep,
    current_user: CurrentUserDep,
):
    await conversations.remove(conversation_id, current_user.id)
    return SuccessResponse(data=None, message="Deleted conversation successfully")
