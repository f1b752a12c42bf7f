"""
Realtime broadcast hub.

'BroadcastHub' is the coordination core. It authenticates incoming connections
against the session store, keeps the presence set, serves the backlog from the
message log, authorizes edit and delete by author equality, applies mutations
to the log and fans the resulting events out to every connection.

Per connection the lifecycle is:

    HANDSHAKING   -> 'connect' validates the bearer token; on failure the
                     connection is rejected and receives nothing.
    AUTHENTICATED -> presence registered, 'presence' to all, 'user_joined' to
                     the others, 'history' to the joiner only; then 'post',
                     'edit', 'delete' and 'typing' are accepted.
    DISCONNECTED  -> presence unregistered, 'presence' and 'user_left' to the
                     remaining connections.

Every storage mutation and the broadcast that follows it run under one lock.
The broadcast is issued only after the mutation has committed, and because
'Connection.deliver' never blocks, all connections see the same order of
events. Failures are reported to the requester alone as an 'error' event and
are never retried.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from realtime_chat.chat_database.data_models.message import DEFAULT_RECENT_LIMIT, ChatMessage, MessageDatabase
from realtime_chat.chat_database.data_models.user import User
from realtime_chat.errors import AuthenticationError, AuthorizationError, ChatError, StorageError
from realtime_chat.realtime import events
from realtime_chat.realtime.connection import Connection, ConnectionState
from realtime_chat.realtime.events import InboundType, OutboundEvent
from realtime_chat.realtime.presence import PresenceTracker
from realtime_chat.realtime.typing_state import TypingAggregator, TypingState
from realtime_chat.sessions.base import SessionStore
from realtime_chat.utils.time import Clock, get_current_timestamp


class BroadcastHub:
    """
    Central dispatcher for one chat room.

    Attributes:
        sessions: Validates handshake tokens.
        messages: The persistent message log.
        presence: Online users, one entry per authenticated connection.
        typing_state: Who is currently composing.
        history_limit: Number of messages replayed to a new connection.
        clock: Source of server-assigned message timestamps.
    """

    def __init__(
        self,
        sessions: SessionStore,
        messages: MessageDatabase,
        presence: PresenceTracker | None = None,
        typing_timeout_seconds: float | None = None,
        history_limit: int = DEFAULT_RECENT_LIMIT,
        clock: Clock = get_current_timestamp,
    ) -> None:
        self.sessions = sessions
        self.messages = messages
        self.presence = presence or PresenceTracker()
        self.typing_state = TypingAggregator(typing_timeout_seconds, on_expire=self._relay_typing_expiry)
        self.history_limit = history_limit
        self.clock = clock
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()
        self._handlers: dict[InboundType, Callable[[Connection, Any], Awaitable[Any]]] = {
            InboundType.POST: lambda connection, payload: self.post(connection, payload.text),
            InboundType.EDIT: lambda connection, payload: self.edit(connection, payload.message_id, payload.new_text),
            InboundType.DELETE: lambda connection, payload: self.delete(connection, payload.message_id),
            InboundType.TYPING: lambda connection, payload: self.typing(connection, payload.is_typing),
        }

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def online_users(self) -> list[User]:
        return self.presence.snapshot()

    async def connect(self, connection: Connection, token: str | None) -> User:
        """Authenticate 'connection' and bring it into the room.

        Raises 'AuthenticationError' for a missing, unknown or expired token.
        A rejected connection is never registered and receives no events.
        """
        if connection.state != ConnectionState.HANDSHAKING:
            raise AuthenticationError(f"Connection {connection.id} already completed its handshake")
        try:
            session = await self.sessions.validate(token or "")
        except AuthenticationError as exc:
            connection.state = ConnectionState.DISCONNECTED
            logger.warning(f"Rejected connection {connection.id}: {exc.code}")
            raise

        user = session.user
        try:
            await self._admit(connection, user)
        except Exception:
            # the others may already have been told about the joiner
            await self.disconnect(connection)
            raise

        logger.info(f"{user.name} ({user.unique_id}) connected, {len(self.presence)} online")
        return user

    async def _admit(self, connection: Connection, user: User) -> None:
        async with self._lock:
            self.presence.register(connection.id, user)
            connection.user = user
            connection.state = ConnectionState.AUTHENTICATED
            self._connections[connection.id] = connection
            self._broadcast(events.presence(self.presence.snapshot()))
            self._broadcast(events.user_joined(user), exclude=connection.id)
            try:
                backlog = await self.messages.recent(self.history_limit)
            except StorageError as exc:
                logger.exception(f"Could not load history for {user.name}: {exc}")
                connection.deliver(events.error(exc))
            else:
                connection.deliver(events.history(backlog))

    async def disconnect(self, connection: Connection) -> None:
        """Remove 'connection' from the room. Safe to call more than once."""
        async with self._lock:
            connection.state = ConnectionState.DISCONNECTED
            if self._connections.pop(connection.id, None) is None:
                return
            user = self.presence.unregister(connection.id) or connection.user
            stopped = self.typing_state.clear(connection.id)
            if stopped is not None:
                self._broadcast(events.typing(stopped.user_id, False))
            self._broadcast(events.presence(self.presence.snapshot()))
            if user is not None:
                self._broadcast(events.user_left(user))

        name = user.name if user else connection.id
        logger.info(f"{name} disconnected, {len(self.presence)} online")

    async def post(self, connection: Connection, text: str) -> ChatMessage:
        """Append a message as the connection's user and broadcast it to everyone.

        The id and the timestamp are always assigned server-side.
        """
        user = self._require_user(connection)
        async with self._lock:
            timestamp = self.clock()
            message_id = await self.messages.append(user.id, text, timestamp)
            message = ChatMessage(id=message_id, user=user, text=text, timestamp=timestamp)
            self._broadcast(events.message_posted(message))
        logger.debug(f"Message {message_id} posted by {user.name}")
        return message

    async def edit(self, connection: Connection, message_id: int, new_text: str) -> None:
        """Overwrite a message's text. Only its author may do this; the timestamp is kept."""
        user = self._require_user(connection)
        async with self._lock:
            await self._authorize(user, message_id, "edit")
            await self.messages.edit_text(message_id, new_text)
            self._broadcast(events.message_edited(message_id, new_text))
        logger.debug(f"Message {message_id} edited by {user.name}")

    async def delete(self, connection: Connection, message_id: int) -> None:
        """Remove a message. Only its author may do this."""
        user = self._require_user(connection)
        async with self._lock:
            await self._authorize(user, message_id, "delete")
            await self.messages.delete(message_id)
            self._broadcast(events.message_deleted(message_id))
        logger.debug(f"Message {message_id} deleted by {user.name}")

    async def typing(self, connection: Connection, is_typing: bool) -> TypingState:
        """Relay a typing signal to every other connection. The message log is not touched."""
        user = self._require_user(connection)
        state = self.typing_state.signal(connection.id, user, is_typing)
        self._broadcast(events.typing(user.id, is_typing), exclude=connection.id)
        return state

    async def dispatch(self, connection: Connection, raw: Any) -> None:
        """Validate one inbound frame and run the matching operation.

        Any 'ChatError' is turned into an 'error' event for this connection only.
        """
        ref = raw.get("ref") if isinstance(raw, dict) else None
        try:
            event, payload = events.parse_inbound(raw)
            await self._handlers[event.type](connection, payload)
        except StorageError as exc:
            logger.exception(f"Storage failure while handling frame from {connection!r}: {exc}")
            connection.deliver(events.error(exc, ref))
        except ChatError as exc:
            logger.warning(f"Refused frame from {connection!r}: {exc.code} ({exc.message})")
            connection.deliver(events.error(exc, ref))

    async def close_all(self, code: int = 1001, reason: str = "Server shutting down") -> None:
        for connection in list(self._connections.values()):
            await self.disconnect(connection)
            await connection.close(code, reason)

    async def _authorize(self, user: User, message_id: int, action: str) -> None:
        author_id = await self.messages.author_of(message_id)
        if author_id != user.id:
            raise AuthorizationError(f"{user.name} may not {action} message {message_id}")

    def _require_user(self, connection: Connection) -> User:
        if not connection.authenticated or connection.user is None:
            raise AuthenticationError(f"Connection {connection.id} is not authenticated")
        return connection.user

    def _broadcast(self, event: OutboundEvent, exclude: str | None = None) -> None:
        for connection_id, connection in list(self._connections.items()):
            if connection_id == exclude:
                continue
            connection.deliver(event)

    def _relay_typing_expiry(self, connection_id: str, state: TypingState) -> None:
        if connection_id in self._connections:
            self._broadcast(events.typing(state.user_id, False), exclude=connection_id)
