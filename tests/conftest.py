import pytest

from realtime_chat.chat_database.data_models.user import User
from realtime_chat.chat_database.in_memory import InMemoryMessageDatabase, InMemoryUserDatabase
from realtime_chat.realtime.connection import Connection
from realtime_chat.realtime.events import OutboundEvent, OutboundType
from realtime_chat.realtime.hub import BroadcastHub
from realtime_chat.sessions.in_memory import InMemorySessionStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Deterministic epoch-millisecond clock."""

    def __init__(self, now: int = START_MS) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, milliseconds: int) -> None:
        self.now += milliseconds


class FakeConnection(Connection):
    """Collects every delivered event instead of writing to a socket."""

    def __init__(self, connection_id: str | None = None) -> None:
        super().__init__(connection_id)
        self.events: list[OutboundEvent] = []
        self.closed_with: tuple[int, str] | None = None

    def deliver(self, event: OutboundEvent) -> None:
        self.events.append(event)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)

    def types(self) -> list[OutboundType]:
        return [event.type for event in self.events]

    def of_type(self, event_type: OutboundType) -> list[OutboundEvent]:
        return [event for event in self.events if event.type == event_type]

    def clear(self) -> None:
        self.events.clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_db() -> InMemoryUserDatabase:
    return InMemoryUserDatabase()


@pytest.fixture
def message_db(user_db: InMemoryUserDatabase) -> InMemoryMessageDatabase:
    return InMemoryMessageDatabase(user_db)


@pytest.fixture
def sessions(clock: FakeClock) -> InMemorySessionStore:
    return InMemorySessionStore(clock=clock)


@pytest.fixture
def hub(sessions: InMemorySessionStore, message_db: InMemoryMessageDatabase, clock: FakeClock) -> BroadcastHub:
    return BroadcastHub(sessions=sessions, messages=message_db, clock=clock)


@pytest.fixture
async def alice(user_db: InMemoryUserDatabase) -> User:
    record = await user_db.create_user("alice", "hash", "#f00", "#ALICE1")
    return record.to_user()


@pytest.fixture
async def bob(user_db: InMemoryUserDatabase) -> User:
    record = await user_db.create_user("bob", "hash", "#00f", "#BOB001")
    return record.to_user()
