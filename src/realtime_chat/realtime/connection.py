"""
Transport-agnostic connection abstraction.

The hub only ever calls 'deliver', which must not block: fan-out to every
connection happens while the hub holds its ordering lock, so a slow client
must not hold up the others. 'QueuedConnection' satisfies this with an
unbounded outbox drained by 'pump', which the transport runs as its own task.
Because events enter every outbox in the same order, every client observes
the same relative order of broadcasts.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import Any

from realtime_chat.chat_database.data_models.user import User
from realtime_chat.realtime.events import OutboundEvent


class ConnectionState(StrEnum):
    HANDSHAKING = "handshaking"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


class Connection(ABC):
    """
    One bidirectional client channel.

    'user' is the snapshot attached at handshake time and kept for the whole
    lifetime of the connection; it is never re-validated per message.
    """

    def __init__(self, connection_id: str | None = None) -> None:
        self.id = connection_id or uuid.uuid4().hex
        self.user: User | None = None
        self.state = ConnectionState.HANDSHAKING

    @property
    def authenticated(self) -> bool:
        return self.state == ConnectionState.AUTHENTICATED

    @abstractmethod
    def deliver(self, event: OutboundEvent) -> None:
        """Queue 'event' for this client without blocking."""
        pass

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None:
        pass

    def __repr__(self) -> str:
        name = self.user.name if self.user else "anonymous"
        return f"<{type(self).__name__} {self.id} {name} {self.state}>"


class QueuedConnection(Connection):
    """Connection with an in-process outbox. Subclasses implement 'send'."""

    def __init__(self, connection_id: str | None = None) -> None:
        super().__init__(connection_id)
        self.outbox: asyncio.Queue[OutboundEvent | None] = asyncio.Queue()

    def deliver(self, event: OutboundEvent) -> None:
        if self.state != ConnectionState.DISCONNECTED:
            self.outbox.put_nowait(event)

    @abstractmethod
    async def send(self, payload: dict[str, Any]) -> None:
        """Write one JSON-ready frame to the transport."""
        pass

    async def pump(self) -> None:
        """Drain the outbox into the transport until 'stop_pump' is called."""
        while True:
            event = await self.outbox.get()
            if event is None:
                return
            await self.send(event.model_dump(mode="json"))

    def stop_pump(self) -> None:
        self.outbox.put_nowait(None)
