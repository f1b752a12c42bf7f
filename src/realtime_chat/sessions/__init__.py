from realtime_chat.sessions.base import DEFAULT_SESSION_TTL_MS, Session, SessionStore
from realtime_chat.sessions.in_memory import InMemorySessionStore

__all__ = ["DEFAULT_SESSION_TTL_MS", "InMemorySessionStore", "Session", "SessionStore"]
