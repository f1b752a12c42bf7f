"""SQLite-backed 'UserDatabase'."""

import aiosqlite

from realtime_chat.chat_database.data_models.user import UserDatabase, UserRecord
from realtime_chat.chat_database.sqlite.connection import SQLiteDatabase
from realtime_chat.errors import NameTakenError, StorageError, UserNotFoundError

_COLUMNS = "id, name, color, unique_id, password"


def _to_record(row: aiosqlite.Row) -> UserRecord:
    return UserRecord(
        id=row["id"], name=row["name"], color=row["color"], unique_id=row["unique_id"], password_hash=row["password"]
    )


class SQLiteUserDatabase(UserDatabase):
    def __init__(self, database: SQLiteDatabase) -> None:
        self.database = database

    @property
    def connection(self) -> aiosqlite.Connection:
        return self.database.connection

    async def create_user(self, name: str, password_hash: str, color: str, unique_id: str) -> UserRecord:
        async with self.database.write_lock:
            try:
                cursor = await self.connection.execute(
                    "INSERT INTO users (name, password, color, unique_id) VALUES (?, ?, ?, ?)",
                    (name, password_hash, color, unique_id),
                )
                await self.connection.commit()
            except aiosqlite.IntegrityError as exc:
                await self.connection.rollback()
                raise NameTakenError(f"Name {name!r} or id {unique_id!r} is taken") from exc
            except aiosqlite.Error as exc:
                raise StorageError(f"Could not create user {name!r}: {exc}") from exc
        user_id = cursor.lastrowid
        if user_id is None:
            raise StorageError(f"No id assigned to user {name!r}")
        return UserRecord(id=user_id, name=name, color=color, unique_id=unique_id, password_hash=password_hash)

    async def get_user_by_id(self, user_id: int) -> UserRecord | None:
        return await self._fetch_one("id", user_id)

    async def get_user_by_name(self, name: str) -> UserRecord | None:
        return await self._fetch_one("name", name)

    async def _fetch_one(self, column: str, value: str | int) -> UserRecord | None:
        try:
            async with self.connection.execute(f"SELECT {_COLUMNS} FROM users WHERE {column} = ?", (value,)) as cursor:
                row = await cursor.fetchone()
        except aiosqlite.Error as exc:
            raise StorageError(f"Could not look up user by {column} {value!r}: {exc}") from exc
        return _to_record(row) if row else None

    async def update_user(
        self, user_id: int, name: str, color: str, password_hash: str | None = None
    ) -> UserRecord:
        updates = ["name = ?", "color = ?"]
        values: list[str | int] = [name, color]
        if password_hash:
            updates.append("password = ?")
            values.append(password_hash)
        values.append(user_id)

        async with self.database.write_lock:
            try:
                cursor = await self.connection.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE id = ?", tuple(values)
                )
                await self.connection.commit()
            except aiosqlite.IntegrityError as exc:
                await self.connection.rollback()
                raise NameTakenError(f"Name {name!r} is taken") from exc
            except aiosqlite.Error as exc:
                raise StorageError(f"Could not update user {user_id}: {exc}") from exc
        if cursor.rowcount == 0:
            raise UserNotFoundError(f"User {user_id} not found")

        user = await self.get_user_by_id(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def delete_user(self, user_id: int) -> bool:
        async with self.database.write_lock:
            try:
                cursor = await self.connection.execute("DELETE FROM users WHERE id = ?", (user_id,))
                await self.connection.commit()
            except aiosqlite.Error as exc:
                await self.connection.rollback()
                raise StorageError(f"Could not delete user {user_id}: {exc}") from exc
        return cursor.rowcount > 0
