"""Room-based chat relay over websocket connections."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Dict, Optional, Set
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.auth import TokenPayload
from tunematch.db.session import AsyncSessionLocal
from tunematch.errors import ChatPermissionError, PersistenceError
from tunematch.services.chat_service import (
    append_message,
    find_or_create_conversation,
    get_conversation,
)

logger = logging.getLogger(__name__)

# Event names shared with the frontend
JOIN_CHAT = "join chat"
CHAT_MESSAGE = "chat message"
REQUEST_CHAT = "request chat"
CHAT_READY = "chat ready"
ERROR = "error"


class ChatConnection:
    """An authenticated websocket registered with the relay."""

    def __init__(self, websocket: Any, user: TokenPayload):
        self.websocket = websocket
        self.user = user
        self.id = uuid4().hex

    @property
    def spotify_id(self) -> str:
        return self.user.spotify_id

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self):
        return f"<ChatConnection {self.id} user={self.spotify_id}>"


class ChatRelay:
    """
    Routes chat messages to the connections joined to a conversation's room.

    The relay owns its room registry: connections are registered on
    connect and removed from every room on disconnect. Messages are stored
    before they are broadcast, and appends to one conversation are
    serialized so stored order and broadcast order agree. Delivery is
    best-effort; a connection that is not joined when a message is
    broadcast does not receive it.
    """

    def __init__(self, session_factory: Optional[Callable[[], AsyncSession]] = None):
        self._session_factory = session_factory or AsyncSessionLocal
        self._rooms: Dict[str, Set[ChatConnection]] = {}
        self._memberships: Dict[ChatConnection, Set[str]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}

    # Registry

    def connect(self, connection: ChatConnection) -> None:
        self._memberships.setdefault(connection, set())
        logger.info(f"User {connection.spotify_id} connected ({connection.id})")

    def disconnect(self, connection: ChatConnection) -> None:
        rooms = self._memberships.pop(connection, set())
        for chat_id in rooms:
            members = self._rooms.get(chat_id)
            if members is None:
                continue
            members.discard(connection)
            if not members:
                del self._rooms[chat_id]
                self._release_lock(chat_id)
        logger.info(f"User {connection.spotify_id} disconnected ({connection.id})")

    def members(self, chat_id: str) -> Set[ChatConnection]:
        return set(self._rooms.get(chat_id, ()))

    def rooms_of(self, connection: ChatConnection) -> Set[str]:
        return set(self._memberships.get(connection, ()))

    @property
    def connection_count(self) -> int:
        return len(self._memberships)

    def _add_member(self, connection: ChatConnection, chat_id: str) -> None:
        self._rooms.setdefault(chat_id, set()).add(connection)
        self._memberships.setdefault(connection, set()).add(chat_id)

    @asynccontextmanager
    async def _room_lock(self, chat_id: str) -> AsyncIterator[None]:
        """Serialize appends to one conversation."""
        lock = self._locks.get(chat_id)
        if lock is None:
            lock = self._locks[chat_id] = asyncio.Lock()
        self._lock_users[chat_id] = self._lock_users.get(chat_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[chat_id] -= 1
            if chat_id not in self._rooms:
                self._release_lock(chat_id)

    def _release_lock(self, chat_id: str) -> None:
        # Only forget a lock nobody holds or waits on
        if not self._lock_users.get(chat_id):
            self._lock_users.pop(chat_id, None)
            self._locks.pop(chat_id, None)

    @property
    def lock_count(self) -> int:
        return len(self._locks)

    # Delivery

    async def emit(self, connection: ChatConnection, event: str, data: Any) -> bool:
        """Send one event to one connection; drops the connection if the send fails."""
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.warning(f"Dropping {connection!r} after failed send: {e}")
            self.disconnect(connection)
            return False

    async def broadcast(self, chat_id: str, event: str, data: Any) -> int:
        """Send an event to every member of a room. Returns the delivered count."""
        delivered = 0
        for connection in self.members(chat_id):
            if await self.emit(connection, event, data):
                delivered += 1
        return delivered

    async def _error(self, connection: ChatConnection, message: str) -> None:
        await self.emit(connection, ERROR, {"message": message})

    # Operations

    async def join_room(self, connection: ChatConnection, chat_id: Any) -> bool:
        """
        Add a connection to a conversation's room.

        Only the conversation's two participants may join. Joining twice
        is a no-op.
        """
        chat_id = str(chat_id) if chat_id is not None else ""
        if not chat_id:
            await self._error(connection, "chatId is required")
            return False

        try:
            async with self._session_factory() as db:
                conversation = await get_conversation(db, chat_id)
        except PersistenceError:
            await self._error(connection, "Could not join chat")
            return False

        if conversation is None:
            logger.warning(f"{connection!r} tried to join unknown chat {chat_id}")
            await self._error(connection, "Chat not found")
            return False
        if not conversation.has_participant(connection.spotify_id):
            logger.warning(f"{connection!r} is not a participant of chat {chat_id}")
            await self._error(connection, "Not a participant of this chat")
            return False

        self._add_member(connection, conversation.chat_id)
        logger.info(f"User {connection.spotify_id} joined chat room {conversation.chat_id}")
        return True

    async def request_conversation(
        self,
        connection: ChatConnection,
        sender_id: str,
        recipient_id: str
    ) -> Optional[str]:
        """Find or create the pair's conversation and tell the requester its id."""
        if not self._is_sender(connection, sender_id):
            await self._error(connection, "senderId does not match the authenticated user")
            return None

        try:
            async with self._session_factory() as db:
                conversation = await find_or_create_conversation(db, sender_id, recipient_id)
        except ValueError as e:
            await self._error(connection, str(e))
            return None
        except PersistenceError as e:
            logger.error(f"Error requesting chat: {e}")
            return None

        await self.emit(connection, CHAT_READY, {"chatId": conversation.chat_id})
        return conversation.chat_id

    async def send_message(
        self,
        connection: ChatConnection,
        sender_id: str,
        recipient_id: str,
        body: str,
        chat_id: Optional[str] = None
    ) -> bool:
        """
        Store a message and broadcast it to the conversation's room.

        The sender's own connection receives the echo if it has joined.
        If the message cannot be stored it is not broadcast.
        """
        if not self._is_sender(connection, sender_id):
            await self._error(connection, "senderId does not match the authenticated user")
            return False

        try:
            async with self._session_factory() as db:
                conversation = await find_or_create_conversation(db, sender_id, recipient_id)
                room = conversation.chat_id
                if chat_id is not None and str(chat_id) != room:
                    logger.warning(f"Client chatId {chat_id} does not match conversation {room}, using {room}")

                async with self._room_lock(room):
                    message = await append_message(db, conversation, sender_id, body)
                    await self.broadcast(room, CHAT_MESSAGE, {
                        "senderId": message.sender_id,
                        "message": message.body,
                        "chatId": room,
                    })
        except (ValueError, ChatPermissionError) as e:
            await self._error(connection, str(e))
            return False
        except PersistenceError as e:
            logger.error(f"Error saving chat message: {e}")
            return False

        return True

    async def handle_event(self, connection: ChatConnection, event: Any, data: Any) -> None:
        """Dispatch one client frame."""
        if event == JOIN_CHAT:
            await self.join_room(connection, data)
        elif event == REQUEST_CHAT:
            if not isinstance(data, dict):
                await self._error(connection, "Malformed request chat payload")
                return
            await self.request_conversation(
                connection,
                _as_str(data.get("senderId")),
                _as_str(data.get("recipientId"))
            )
        elif event == CHAT_MESSAGE:
            if not isinstance(data, dict):
                await self._error(connection, "Malformed chat message payload")
                return
            await self.send_message(
                connection,
                _as_str(data.get("senderId")),
                _as_str(data.get("recipientId")),
                _as_str(data.get("message")),
                data.get("chatId")
            )
        else:
            logger.debug(f"Ignoring unknown event {event!r} from {connection!r}")
            await self._error(connection, f"Unknown event: {event}")

    @staticmethod
    def _is_sender(connection: ChatConnection, sender_id: str) -> bool:
        if sender_id != connection.spotify_id:
            logger.warning(f"{connection!r} tried to act as {sender_id}")
            return False
        return True


def _as_str(value: Any) -> str:
    return value if isinstance(value, str) else ""
