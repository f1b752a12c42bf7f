"""
Message data model and storage interface.

The message log is an ordered, append-mostly store. Storage assigns ids, and
ids are strictly increasing even under concurrent appends, so '(timestamp, id)'
is a total order shared by the backlog and the live broadcast stream.

Edit and delete are unconditional here: author-equality authorization lives one
layer up in the broadcast hub, which calls 'author_of' before mutating.

Concrete implementations: 'InMemoryMessageDatabase', 'SQLiteMessageDatabase'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from realtime_chat.chat_database.data_models.user import User

DEFAULT_RECENT_LIMIT = 200


class Message(BaseModel):
    """A stored message row. 'user_id' references the author."""

    id: int
    user_id: int
    text: str
    timestamp: int


class ChatMessage(BaseModel):
    """A message as sent to clients, carrying a snapshot of its author."""

    id: int
    user: User
    text: str
    timestamp: int


class MessageDatabase(ABC):
    """Abstract repository for the persistent message log."""

    @abstractmethod
    async def append(self, author_id: int, text: str, timestamp: int) -> int:
        """Store a new message and return its assigned id."""
        pass

    @abstractmethod
    async def recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[ChatMessage]:
        """Return the newest 'limit' messages, oldest first.

        Messages whose author no longer exists are left out.
        """
        pass

    @abstractmethod
    async def author_of(self, message_id: int) -> int:
        """Return the author id of a message. Raise 'MessageNotFoundError' if absent."""
        pass

    @abstractmethod
    async def edit_text(self, message_id: int, new_text: str) -> None:
        """Overwrite the text in place. The original timestamp is kept."""
        pass

    @abstractmethod
    async def delete(self, message_id: int) -> None:
        pass

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
        return None
