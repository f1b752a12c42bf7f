from realtime_chat.chat_database.sqlite.connection import open_database
from realtime_chat.chat_database.sqlite.message import SQLiteMessageDatabase
from realtime_chat.chat_database.sqlite.user import SQLiteUserDatabase

__all__ = ["SQLiteMessageDatabase", "SQLiteUserDatabase", "open_database"]
