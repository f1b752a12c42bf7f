from realtime_chat.chat_database.data_models.message import ChatMessage, Message, MessageDatabase
from realtime_chat.chat_database.data_models.user import User, UserDatabase, UserRecord

__all__ = [
    "ChatMessage",
    "Message",
    "MessageDatabase",
    "User",
    "UserDatabase",
    "UserRecord",
]
