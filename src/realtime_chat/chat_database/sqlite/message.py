"""
SQLite-backed 'MessageDatabase'.

'INTEGER PRIMARY KEY AUTOINCREMENT' gives distinct, strictly increasing ids.
Deleting a user cascades to their messages; 'recent' joins against users, so a
row whose author is gone would be left out either way.
"""

import aiosqlite

from realtime_chat.chat_database.data_models.message import DEFAULT_RECENT_LIMIT, ChatMessage, MessageDatabase
from realtime_chat.chat_database.data_models.user import User
from realtime_chat.chat_database.sqlite.connection import SQLiteDatabase
from realtime_chat.errors import MessageNotFoundError, StorageError

_RECENT_QUERY = """
SELECT * FROM (
    SELECT m.id, m.user_id, m.text, m.timestamp, u.name, u.color, u.unique_id
    FROM messages m
    JOIN users u ON m.user_id = u.id
    ORDER BY m.timestamp DESC, m.id DESC
    LIMIT ?
) ORDER BY timestamp ASC, id ASC
"""


class SQLiteMessageDatabase(MessageDatabase):
    def __init__(self, database: SQLiteDatabase) -> None:
        self.database = database

    @property
    def connection(self) -> aiosqlite.Connection:
        return self.database.connection

    async def append(self, author_id: int, text: str, timestamp: int) -> int:
        async with self.database.write_lock:
            try:
                cursor = await self.connection.execute(
                    "INSERT INTO messages (user_id, text, timestamp) VALUES (?, ?, ?)",
                    (author_id, text, timestamp),
                )
                await self.connection.commit()
            except aiosqlite.Error as exc:
                await self.connection.rollback()
                raise StorageError(f"Could not store message from user {author_id}: {exc}") from exc
        if cursor.lastrowid is None:
            raise StorageError("No id assigned to message")
        return cursor.lastrowid

    async def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[ChatMessage]:
        try:
            async with self.connection.execute(_RECENT_QUERY, (limit,)) as cursor:
                rows = await cursor.fetchall()
        except aiosqlite.Error as exc:
            raise StorageError(f"Could not load recent messages: {exc}") from exc
        return [
            ChatMessage(
                id=row["id"],
                user=User(id=row["user_id"], name=row["name"], color=row["color"], unique_id=row["unique_id"]),
                text=row["text"],
                timestamp=row["timestamp"],
            )
            for row in rows
        ]

    async def author_of(self, message_id: int) -> int:
        try:
            async with self.connection.execute("SELECT user_id FROM messages WHERE id = ?", (message_id,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Could not look up message {message_id}: {exc}") from exc
        if row is None:
            raise MessageNotFoundError(f"Message {message_id} not found")
        return row["user_id"]

    async def edit_text(self, message_id: int, new_text: str) -> None:
        await self._write("UPDATE messages SET text = ? WHERE id = ?", (new_text, message_id), message_id)

    async def delete(self, message_id: int) -> None:
        await self._write("DELETE FROM messages WHERE id = ?", (message_id,), message_id)

    async def _write(self, sql: str, params: tuple, message_id: int) -> None:
        async with self.database.write_lock:
            try:
                cursor = await self.connection.execute(sql, params)
                await self.connection.commit()
            except aiosqlite.Error as exc:
                await self.connection.rollback()
                raise StorageError(f"Could not modify message {message_id}: {exc}") from exc
        if cursor.rowcount == 0:
            raise MessageNotFoundError(f"Message {message_id} not found")

    async def close(self) -> None:
        await self.database.close()
