"""WebSocket broadcast hub.

Keeps every live socket together with an outgoing queue and a forwarding
task, plus a room registry (conversation id -> connections) for scoped
delivery.

Architecture:
    MessageService.post_message
        ↓ hub.emit("newMessage", payload, room=...)
        ↓ queue.put_nowait (one per subscriber, no awaiting)
    BroadcastHub._forward_messages(connection_id)
        ↓ queue.get()
        ↓ websocket.send_json(msg)
    Client

Delivery is at-most-once: a subscriber whose socket fails is dropped and
the message is lost for it.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class BroadcastHub:
    """
    Fan-out channel for connected sockets.

    One instance lives in ``app.state.hub`` for the lifetime of the app.
    All methods run on the event loop; there is no cross-thread access.
    """

    def __init__(self):
        # {connection_id: WebSocket}
        self._websockets: Dict[str, WebSocket] = {}
        # {connection_id: user_id}
        self._users: Dict[str, int] = {}
        # {connection_id: asyncio.Queue}
        self._queues: Dict[str, asyncio.Queue] = {}
        # {connection_id: asyncio.Task}
        self._tasks: Dict[str, asyncio.Task] = {}
        # {room: {connection_id, ...}}
        self._rooms: Dict[str, Set[str]] = {}

    @staticmethod
    def conversation_room(conversation_id: int) -> str:
        return f"conversation:{conversation_id}"

    async def connect(self, websocket: WebSocket, user_id: int) -> str:
        """
        Register an accepted WebSocket and start forwarding to it.

        Args:
            websocket: Accepted WebSocket connection
            user_id: Authenticated user owning the socket

        Returns:
            Connection id to use with join/leave/disconnect
        """
        connection_id = uuid.uuid4().hex
        self._websockets[connection_id] = websocket
        self._users[connection_id] = user_id
        self._queues[connection_id] = asyncio.Queue()

        task = asyncio.create_task(self._forward_messages(connection_id))
        self._tasks[connection_id] = task

        def task_done_callback(t: asyncio.Task):
            if not t.cancelled() and t.exception():
                exc = t.exception()
                logger.error(
                    f"Forwarding task failed for connection {connection_id}: {exc}",
                    exc_info=(type(exc), exc, exc.__traceback__)
                )

        task.add_done_callback(task_done_callback)

        logger.info(f"User {user_id} WebSocket connected ({connection_id})")
        return connection_id

    async def disconnect(self, connection_id: str, close: bool = True):
        """
        Unregister a connection, leave all its rooms and stop forwarding.

        Args:
            connection_id: Id returned by ``connect``
            close: Also close the socket
        """
        websocket = self._websockets.pop(connection_id, None)
        if websocket is None:
            return

        user_id = self._users.pop(connection_id, None)
        self._queues.pop(connection_id, None)
        for members in self._rooms.values():
            members.discard(connection_id)
        self._rooms = {room: members for room, members in self._rooms.items() if members}

        task = self._tasks.pop(connection_id, None)
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await asyncio.wait_for(task, timeout=1.0)
            except asyncio.CancelledError:
                logger.debug(f"Forwarding task cancelled for connection {connection_id}")
            except asyncio.TimeoutError:
                logger.warning(f"Task cancellation timed out for connection {connection_id}")

        if close:
            try:
                await websocket.close()
            except Exception as e:
                logger.debug(f"Error closing WebSocket {connection_id}: {e}")

        logger.info(f"User {user_id} WebSocket disconnected ({connection_id})")

    def join(self, connection_id: str, room: str) -> None:
        if connection_id not in self._websockets:
            return
        self._rooms.setdefault(room, set()).add(connection_id)
        logger.debug(f"Connection {connection_id} joined {room}")

    def leave(self, connection_id: str, room: str) -> None:
        members = self._rooms.get(room)
        if not members:
            return
        members.discard(connection_id)
        if not members:
            del self._rooms[room]
        logger.debug(f"Connection {connection_id} left {room}")

    def emit(self, event: str, payload: Any, room: Optional[str] = None) -> int:
        """
        Queue an event for every subscriber, or only for members of ``room``.

        Does not wait for delivery.

        Args:
            event: Event name, e.g. "newMessage"
            payload: JSON-serializable data
            room: Restrict delivery to this room

        Returns:
            Number of subscribers the event was queued for
        """
        if room is None:
            targets = list(self._queues)
        else:
            targets = [cid for cid in self._rooms.get(room, ()) if cid in self._queues]

        envelope = {"event": event, "data": payload}
        for connection_id in targets:
            self._queues[connection_id].put_nowait(envelope)

        logger.debug(f"Emitted {event} to {len(targets)} subscriber(s) (room={room})")
        return len(targets)

    def is_connected(self, connection_id: str) -> bool:
        return connection_id in self._websockets

    @property
    def connection_count(self) -> int:
        return len(self._websockets)

    def room_members(self, room: str) -> Set[str]:
        return set(self._rooms.get(room, ()))

    async def _forward_messages(self, connection_id: str):
        """Send queued events to the socket until it goes away"""
        queue = self._queues.get(connection_id)
        if queue is None:
            return

        try:
            while connection_id in self._websockets:
                message = await queue.get()
                websocket = self._websockets.get(connection_id)
                if websocket is None:
                    break
                try:
                    await websocket.send_json(message)
                except Exception as e:
                    logger.error(f"Error forwarding to connection {connection_id}: {e}")
                    await self.disconnect(connection_id, close=False)
                    break
        except asyncio.CancelledError:
            logger.debug(f"Forwarding task cancelled for connection {connection_id}")
            raise

    async def disconnect_all(self):
        """Disconnect every socket (application shutdown)"""
        connection_ids = list(self._websockets)
        for connection_id in connection_ids:
            await self.disconnect(connection_id)
        logger.info(f"Disconnected all sockets ({len(connection_ids)} connections)")
