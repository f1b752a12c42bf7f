"""Process-local 'UserDatabase' used by tests and the 'memory' backend."""

import asyncio
import itertools

from realtime_chat.chat_database.data_models.user import UserDatabase, UserRecord
from realtime_chat.errors import NameTakenError, UserNotFoundError


class InMemoryUserDatabase(UserDatabase):
    def __init__(self) -> None:
        self._users: dict[int, UserRecord] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def create_user(self, name: str, password_hash: str, color: str, unique_id: str) -> UserRecord:
        async with self._lock:
            if any(user.name == name or user.unique_id == unique_id for user in self._users.values()):
                raise NameTakenError(f"Name {name!r} or id {unique_id!r} is taken")
            user = UserRecord(
                id=next(self._ids), name=name, color=color, unique_id=unique_id, password_hash=password_hash
            )
            self._users[user.id] = user
            return user.model_copy()

    async def get_user_by_id(self, user_id: int) -> UserRecord | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_name(self, name: str) -> UserRecord | None:
        user = next((user for user in self._users.values() if user.name == name), None)
        return user.model_copy() if user else None

    async def update_user(
        self, user_id: int, name: str, color: str, password_hash: str | None = None
    ) -> UserRecord:
        async with self._lock:
            user = self._users.get(user_id)
            if user is None:
                raise UserNotFoundError(f"User {user_id} not found")
            if any(other.name == name and other.id != user_id for other in self._users.values()):
                raise NameTakenError(f"Name {name!r} is taken")
            updated = user.model_copy(
                update={"name": name, "color": color, "password_hash": password_hash or user.password_hash}
            )
            self._users[user_id] = updated
            return updated.model_copy()

    async def delete_user(self, user_id: int) -> bool:
        async with self._lock:
            return self._users.pop(user_id, None) is not None
