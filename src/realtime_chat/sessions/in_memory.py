"""Process-local 'SessionStore'. Sessions are lost on restart."""

from loguru import logger

from realtime_chat.chat_database.data_models.user import User
from realtime_chat.errors import SessionExpiredError, SessionNotFoundError, ValidationError
from realtime_chat.sessions.base import DEFAULT_SESSION_TTL_MS, Session, SessionStore
from realtime_chat.utils.security import generate_token
from realtime_chat.utils.time import Clock, get_current_timestamp

REFRESHABLE_FIELDS = frozenset({"name", "color"})


class InMemorySessionStore(SessionStore):
    """
    Dictionary-backed session store.

    All operations complete without awaiting, so on a single event loop each
    one is atomic with respect to the others and the raw mapping is never
    observed half-updated.

    Attributes:
        ttl_ms: Lifetime of a new session in milliseconds.
        clock: Returns the current epoch milliseconds. Injected by tests.
    """

    def __init__(self, ttl_ms: int = DEFAULT_SESSION_TTL_MS, clock: Clock = get_current_timestamp) -> None:
        self.ttl_ms = ttl_ms
        self.clock = clock
        self._sessions: dict[str, Session] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    async def create(self, user: User) -> str:
        token = generate_token()
        self._sessions[token] = Session(token=token, user=user.model_copy(), expires_at=self.clock() + self.ttl_ms)
        logger.debug(f"Session created for {user.name} ({user.unique_id})")
        return token

    async def validate(self, token: str) -> Session:
        session = self._sessions.get(token)
        if session is None:
            raise SessionNotFoundError("Invalid session")
        if session.is_expired(self.clock()):
            del self._sessions[token]
            logger.debug(f"Evicted expired session of {session.user.name}")
            raise SessionExpiredError("Session expired")
        return session.model_copy(deep=True)

    async def refresh_user(self, token: str, **fields: str) -> Session:
        unknown = set(fields) - REFRESHABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot refresh fields: {', '.join(sorted(unknown))}")
        session = await self.validate(token)
        stored = self._sessions[token]
        stored.user = stored.user.model_copy(update=fields)
        return session.model_copy(update={"user": stored.user.model_copy()})

    async def refresh_user_everywhere(self, user: User) -> int:
        touched = 0
        for session in self._sessions.values():
            if session.user.id == user.id:
                session.user = user.model_copy()
                touched += 1
        return touched

    async def revoke(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    async def purge_expired(self) -> int:
        now = self.clock()
        expired = [token for token, session in self._sessions.items() if session.is_expired(now)]
        for token in expired:
            del self._sessions[token]
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)
