"""
Session data model and storage interface.

A session maps an opaque bearer token to a snapshot of the authenticated user
and a fixed expiry instant. Expiry is checked on every use; an expired session
is treated exactly like a missing one, and lazily evicted when found. The
expiry is set once at creation and is never extended by use.

Concrete implementations: 'InMemorySessionStore'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from realtime_chat.chat_database.data_models.user import User
from realtime_chat.utils.time import days_to_milliseconds

DEFAULT_SESSION_TTL_MS = days_to_milliseconds(30)


class Session(BaseModel):
    """A bearer token, the user it authenticates, and its expiry in epoch milliseconds."""

    token: str
    user: User
    expires_at: int

    def is_expired(self, now: int) -> bool:
        return now >= self.expires_at


class SessionStore(ABC):
    """Abstract repository for 'Session' records."""

    @abstractmethod
    async def create(self, user: User) -> str:
        """Create a session for 'user' and return its freshly generated token."""
        pass

    @abstractmethod
    async def validate(self, token: str) -> Session:
        """Return the live session for 'token'.

        Raise 'SessionNotFoundError' if the token is unknown and
        'SessionExpiredError' if its expiry has passed.
        """
        pass

    @abstractmethod
    async def refresh_user(self, token: str, **fields: str) -> Session:
        """Update the cached user snapshot of one session in place."""
        pass

    @abstractmethod
    async def refresh_user_everywhere(self, user: User) -> int:
        """Replace the snapshot in every session of 'user.id'. Return how many were touched."""
        pass

    @abstractmethod
    async def revoke(self, token: str) -> bool:
        pass

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop every expired session and return how many were removed."""
        pass
