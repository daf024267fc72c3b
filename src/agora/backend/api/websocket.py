"""WebSocket API for real-time messaging"""

import logging

import pydantic
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query

from ..enums import BroadcastEvent
from ..exception import AgoraException
from ..schema.conversation import CreateMessageRequest
from ..service import ConversationService, MessageService, TokenService
from ..store import CredentialStore
from ..websocket import BroadcastHub

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: str = Query(..., description="Access token"),
):
    """
    Real-time channel, one per client.

    Connection Establishment:
    1. Client connects to /ws?token=<access token>
    2. Server verifies the token against the access secret
    3. Server accepts and registers the socket in the hub

    Client → Server:
    {"type": "join", "conversation_id": 1}
    {"type": "leave", "conversation_id": 1}
    {"type": "createMessage", "conversation_id": 1, "content": "hi", "image": null}

    Server → Client:
    {"event": "newMessage", "data": {...message...}}
    {"event": "error", "data": {"code": "...", "message": "..."}}
    """
    state = websocket.app.state
    async_session_factory = state.async_session_factory
    hub: BroadcastHub = state.hub
    settings = state.settings

    # 1. Verify token
    try:
        async with async_session_factory() as session:
            tokens = TokenService(settings, CredentialStore(session))
            payload = tokens.decode_access_token(token)
            user = None
            if payload and isinstance(payload.get("id"), int):
                user = await tokens.store.find_user_by_id(payload["id"])
    except Exception as e:
        logger.error(f"WebSocket auth error: {e}", exc_info=True)
        await websocket.close(code=4500, reason="Internal error")
        return

    if user is None:
        logger.warning("WebSocket auth failed")
        await websocket.close(code=4401, reason="Unauthorized")
        return

    # 2. Accept and register
    await websocket.accept()
    connection_id = await hub.connect(websocket, user.id)

    async def send_error(code: str, message: str):
        await websocket.send_json({
            "event": BroadcastEvent.ERROR.value,
            "data": {"code": code, "message": message},
        })

    try:
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                logger.info(f"User {user.id} WebSocket disconnected normally")
                break
            except ValueError:
                await send_error("VALIDATION_ERROR", "Frame is not valid JSON")
                continue

            message_type = data.get("type") if isinstance(data, dict) else None
            conversation_id = data.get("conversation_id") if isinstance(data, dict) else None
            if not isinstance(conversation_id, int):
                await send_error("VALIDATION_ERROR", "Missing conversation_id")
                continue

            try:
                async with async_session_factory() as session:
                    store = CredentialStore(session)

                    if message_type in ("join", "leave"):
                        conversation = await ConversationService(store).get_by_id(conversation_id)
                        room = BroadcastHub.conversation_room(conversation_id)
                        if message_type == "leave":
                            hub.leave(connection_id, room)
                        elif conversation.has_participant(user.id):
                            hub.join(connection_id, room)
                        else:
                            await send_error("FORBIDDEN", "Not a participant of this conversation")

                    elif message_type == "createMessage":
                        request = CreateMessageRequest.model_validate(data)
                        messages = MessageService(store, hub, scope=settings.broadcast_scope)
                        await messages.post_message(
                            user.id,
                            request.conversation_id,
                            request.content,
                            request.image,
                        )
                        await session.commit()

                    else:
                        await send_error("VALIDATION_ERROR", f"Unknown message type: {message_type}")

            except AgoraException as e:
                await send_error(e.code, e.message)
            except pydantic.ValidationError as e:
                await send_error("VALIDATION_ERROR", f"Invalid {message_type} frame: {e.error_count()} error(s)")

    except Exception as e:
        logger.error(
            f"Unexpected error in WebSocket connection for user {user.id}: {e}",
            exc_info=True
        )
    finally:
        await hub.disconnect(connection_id, close=False)
