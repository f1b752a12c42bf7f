"""
Process-local 'MessageDatabase'.

Rows are kept in id order; ids come from a counter advanced under a lock so
concurrent appends receive distinct, strictly increasing ids. Author snapshots
are resolved from the user database at read time, the same way the SQLite
backend joins against the users table.
"""

import asyncio
import itertools

from realtime_chat.chat_database.data_models.message import (
    DEFAULT_RECENT_LIMIT,
    ChatMessage,
    Message,
    MessageDatabase,
)
from realtime_chat.chat_database.data_models.user import UserDatabase
from realtime_chat.errors import MessageNotFoundError


class InMemoryMessageDatabase(MessageDatabase):
    def __init__(self, user_db: UserDatabase) -> None:
        self.user_db = user_db
        self._messages: dict[int, Message] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def append(self, author_id: int, text: str, timestamp: int) -> int:
        async with self._lock:
            message = Message(id=next(self._ids), user_id=author_id, text=text, timestamp=timestamp)
            self._messages[message.id] = message
            return message.id

    async def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[ChatMessage]:
        async with self._lock:
            rows = sorted(self._messages.values(), key=lambda m: (m.timestamp, m.id))

        result: list[ChatMessage] = []
        for message in reversed(rows):
            if len(result) >= limit:
                break
            author = await self.user_db.get_user_by_id(message.user_id)
            if author is None:
                continue
            result.append(
                ChatMessage(id=message.id, user=author.to_user(), text=message.text, timestamp=message.timestamp)
            )
        result.reverse()
        return result

    async def author_of(self, message_id: int) -> int:
        message = self._messages.get(message_id)
        if message is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return message.user_id

    async def edit_text(self, message_id: int, new_text: str) -> None:
        async with self._lock:
            message = self._messages.get(message_id)
            if message is None:
                raise MessageNotFoundError(f"Message {message_id} not found")
            self._messages[message_id] = message.model_copy(update={"text": new_text})

    async def delete(self, message_id: int) -> None:
        async with self._lock:
            if self._messages.pop(message_id, None) is None:
                raise MessageNotFoundError(f"Message {message_id} not found")
