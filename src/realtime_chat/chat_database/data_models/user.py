"""
User data model and storage interface.

'User' is the public identity record that travels in sessions, presence
entries and message payloads. Copies held outside storage are snapshots, not
authoritative. 'UserRecord' adds the password hash and never leaves the
accounts layer.

The 'UserDatabase' ABC is the pluggable storage backend. Concrete
implementations: 'InMemoryUserDatabase', 'SQLiteUserDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class User(BaseModel):
    """
    Public identity of a chat participant.

    'id' is assigned by storage and immutable. 'name' is unique but may be
    changed through a profile update, as may 'color'. 'unique_id' is the
    human-shareable handle ('#K3X9QA') assigned at registration.
    """

    id: int
    name: str
    color: str
    unique_id: str


class UserRecord(User):
    """A 'User' as stored, including the bcrypt password hash."""

    password_hash: str

    def to_user(self) -> User:
        return User(id=self.id, name=self.name, color=self.color, unique_id=self.unique_id)


class UserDatabase(ABC):
    """Abstract repository for 'UserRecord' rows.

    'create_user' raises 'NameTakenError' when either the name or the unique id
    is already in use; 'update_user' raises it for a name collision and
    'UserNotFoundError' for an unknown id.
    """

    @abstractmethod
    async def create_user(self, name: str, password_hash: str, color: str, unique_id: str) -> UserRecord:
        pass

    @abstractmethod
    async def get_user_by_id(self, user_id: int) -> UserRecord | None:
        pass

    @abstractmethod
    async def get_user_by_name(self, name: str) -> UserRecord | None:
        pass

    @abstractmethod
    async def update_user(
        self, user_id: int, name: str, color: str, password_hash: str | None = None
    ) -> UserRecord:
        pass

    @abstractmethod
    async def delete_user(self, user_id: int) -> bool:
        """Remove a user. Their messages are either cascaded or left dangling."""
        pass
