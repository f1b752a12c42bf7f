"""
Typing-state aggregation.

The hub relays both typing signals verbatim to every other connection. The
aggregator remembers which connections last said they were typing so that a
disconnect mid-sentence still produces a final 'is_typing: false', and, when a
timeout is configured, clears a stale entry whose client never sent 'false'.
With no timeout the indicator's auto-clear is left to the clients.
"""

import asyncio
from collections.abc import Callable

from loguru import logger
from pydantic import BaseModel

from realtime_chat.chat_database.data_models.user import User


class TypingState(BaseModel):
    user_id: int
    name: str
    is_typing: bool


ExpiryCallback = Callable[[str, TypingState], None]


class TypingAggregator:
    """
    Per-connection typing flags with an optional inactivity timeout.

    Attributes:
        timeout_seconds: Seconds after the last 'true' signal before the entry
            is cleared and 'on_expire' is called. 'None' disables the timer.
        on_expire: Called with the connection id and a 'false' state when a
            timer fires. The hub uses it to relay the implicit stop.
    """

    def __init__(self, timeout_seconds: float | None = None, on_expire: ExpiryCallback | None = None) -> None:
        self.timeout_seconds = timeout_seconds
        self.on_expire = on_expire
        self._typing: dict[str, TypingState] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}

    def signal(self, connection_id: str, user: User, is_typing: bool) -> TypingState:
        self._cancel_timer(connection_id)
        state = TypingState(user_id=user.id, name=user.name, is_typing=is_typing)
        if is_typing:
            self._typing[connection_id] = state
            if self.timeout_seconds is not None:
                loop = asyncio.get_running_loop()
                self._timers[connection_id] = loop.call_later(self.timeout_seconds, self._expire, connection_id)
        else:
            self._typing.pop(connection_id, None)
        return state

    def clear(self, connection_id: str) -> TypingState | None:
        """Forget a connection. Return the stop state if it was typing."""
        self._cancel_timer(connection_id)
        state = self._typing.pop(connection_id, None)
        if state is None:
            return None
        return state.model_copy(update={"is_typing": False})

    def typing_users(self) -> list[TypingState]:
        return list(self._typing.values())

    def is_typing(self, connection_id: str) -> bool:
        return connection_id in self._typing

    def _expire(self, connection_id: str) -> None:
        self._timers.pop(connection_id, None)
        state = self._typing.pop(connection_id, None)
        if state is None:
            return
        logger.debug(f"Typing state of {state.name} expired")
        if self.on_expire is not None:
            self.on_expire(connection_id, state.model_copy(update={"is_typing": False}))

    def _cancel_timer(self, connection_id: str) -> None:
        timer = self._timers.pop(connection_id, None)
        if timer is not None:
            timer.cancel()
