from realtime_chat.chat_database.in_memory.message import InMemoryMessageDatabase
from realtime_chat.chat_database.in_memory.user import InMemoryUserDatabase

__all__ = ["InMemoryMessageDatabase", "InMemoryUserDatabase"]
