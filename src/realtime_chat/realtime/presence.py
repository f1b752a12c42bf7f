"""
Online-presence tracking.

One entry per open, authenticated connection. The same user connected from
two tabs appears twice; no de-duplication by user id is performed. Presence is
process-lifetime state and is rebuilt from nothing after a restart.
"""

from collections.abc import Iterator

from realtime_chat.chat_database.data_models.user import User


class PresenceTracker:
    def __init__(self) -> None:
        # dicts keep insertion order, which is the snapshot order
        self._entries: dict[str, User] = {}

    def register(self, connection_id: str, user: User) -> None:
        if connection_id in self._entries:
            raise ValueError(f"Connection {connection_id} is already registered")
        self._entries[connection_id] = user

    def unregister(self, connection_id: str) -> User | None:
        return self._entries.pop(connection_id, None)

    def snapshot(self) -> list[User]:
        return [user.model_copy() for user in self._entries.values()]

    def connection_ids(self) -> Iterator[str]:
        return iter(list(self._entries))

    def __contains__(self, connection_id: object) -> bool:
        return connection_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)
