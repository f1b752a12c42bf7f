"""
Shared aiosqlite connection and schema.

Both SQLite repositories operate on one connection. aiosqlite runs every
statement on a single worker thread, so statements never interleave; the
write lock additionally keeps each statement and its commit together.
"""

import asyncio
from pathlib import Path

import aiosqlite
from loguru import logger

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    password TEXT NOT NULL,
    color TEXT NOT NULL,
    unique_id TEXT UNIQUE NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id INTEGER NOT NULL,
    text TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_messages_timestamp ON messages(timestamp, id);
"""


class SQLiteDatabase:
    """Owns the aiosqlite connection shared by the user and message repositories."""

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self.connection = connection
        self.write_lock = asyncio.Lock()

    async def close(self) -> None:
        await self.connection.close()


async def open_database(path: Path | str) -> SQLiteDatabase:
    """Open (or create) the database at 'path' and make sure the schema exists.

    ':memory:' is accepted for throwaway databases.
    """
    connection = await aiosqlite.connect(str(path))
    connection.row_factory = aiosqlite.Row
    await connection.execute("PRAGMA foreign_keys=ON;")
    if str(path) != ":memory:":
        await connection.execute("PRAGMA journal_mode=WAL;")
    await connection.executescript(SCHEMA)
    await connection.commit()
    logger.info(f"SQLite database ready at {path}")
    return SQLiteDatabase(connection)
