import asyncio

import pytest
from conftest import FakeConnection

from realtime_chat.chat_database.in_memory import InMemoryMessageDatabase
from realtime_chat.chat_database.sqlite import SQLiteMessageDatabase, SQLiteUserDatabase, open_database
from realtime_chat.errors import AuthenticationError, SessionExpiredError, SessionNotFoundError, StorageError
from realtime_chat.realtime.connection import ConnectionState
from realtime_chat.realtime.events import OutboundType
from realtime_chat.realtime.hub import BroadcastHub
from realtime_chat.sessions.base import DEFAULT_SESSION_TTL_MS


async def join(hub, sessions, user, connection_id=None) -> FakeConnection:
    connection = FakeConnection(connection_id)
    await hub.connect(connection, await sessions.create(user))
    return connection


def usernames(event) -> list[str]:
    return [user["name"] for user in event.data["users"]]


async def test_unknown_token_is_rejected_without_events(hub):
    connection = FakeConnection()

    with pytest.raises(SessionNotFoundError):
        await hub.connect(connection, "forged")

    assert connection.events == []
    assert connection.state == ConnectionState.DISCONNECTED
    assert hub.online_users() == []


async def test_missing_token_is_rejected(hub):
    with pytest.raises(AuthenticationError):
        await hub.connect(FakeConnection(), None)


async def test_expired_token_is_rejected(hub, sessions, alice, clock):
    token = await sessions.create(alice)
    clock.advance(DEFAULT_SESSION_TTL_MS)
    connection = FakeConnection()

    with pytest.raises(SessionExpiredError):
        await hub.connect(connection, token)
    assert connection.events == []


async def test_first_connection_gets_presence_then_history(hub, sessions, alice):
    connection = await join(hub, sessions, alice)

    assert connection.types() == [OutboundType.PRESENCE, OutboundType.HISTORY]
    assert usernames(connection.events[0]) == ["alice"]
    assert connection.events[1].data == {"messages": []}
    assert connection.user == alice
    assert connection.authenticated


async def test_second_connection_is_announced_to_others_only(hub, sessions, alice, bob):
    first = await join(hub, sessions, alice)
    first.clear()

    second = await join(hub, sessions, bob)

    assert first.types() == [OutboundType.PRESENCE, OutboundType.USER_JOINED]
    assert usernames(first.events[0]) == ["alice", "bob"]
    assert first.events[1].data["user"]["name"] == "bob"
    assert second.types() == [OutboundType.PRESENCE, OutboundType.HISTORY]
    assert usernames(second.events[0]) == ["alice", "bob"]


async def test_post_is_broadcast_to_everyone_with_server_id_and_time(hub, sessions, alice, bob, clock):
    first = await join(hub, sessions, alice)
    second = await join(hub, sessions, bob)
    first.clear()
    second.clear()

    message = await hub.post(first, "hi")

    assert message.id == 1
    assert message.timestamp == clock.now
    assert message.user == alice
    for connection in (first, second):
        [event] = connection.events
        assert event.type == OutboundType.MESSAGE_POSTED
        assert event.data["message"]["text"] == "hi"
        assert event.data["message"]["user"]["name"] == "alice"


async def test_history_replays_recent_messages_oldest_first(sessions, message_db, clock, alice, bob):
    hub = BroadcastHub(sessions=sessions, messages=message_db, history_limit=2, clock=clock)
    poster = await join(hub, sessions, alice)
    for text in ("one", "two", "three"):
        await hub.post(poster, text)
        clock.advance(1)

    late = await join(hub, sessions, bob)

    [history] = late.of_type(OutboundType.HISTORY)
    assert [m["text"] for m in history.data["messages"]] == ["two", "three"]


async def test_author_can_edit_and_timestamp_is_kept(hub, sessions, message_db, alice, bob, clock):
    author = await join(hub, sessions, alice)
    other = await join(hub, sessions, bob)
    message = await hub.post(author, "helo")
    author.clear()
    other.clear()
    clock.advance(5000)

    await hub.edit(author, message.id, "hello")

    for connection in (author, other):
        [event] = connection.events
        assert event.type == OutboundType.MESSAGE_EDITED
        assert event.data == {"message_id": message.id, "new_text": "hello"}
    [stored] = await message_db.recent()
    assert stored.text == "hello"
    assert stored.timestamp == message.timestamp
    assert stored.user.id == alice.id


async def test_non_author_edit_and_delete_are_refused(hub, sessions, message_db, alice, bob):
    author = await join(hub, sessions, alice)
    intruder = await join(hub, sessions, bob)
    message = await hub.post(author, "mine")
    author.clear()
    intruder.clear()

    await hub.dispatch(intruder, {"type": "edit", "data": {"message_id": message.id, "new_text": "yours"}, "ref": "e1"})
    await hub.dispatch(intruder, {"type": "delete", "data": {"message_id": message.id}, "ref": "d1"})

    assert author.events == []
    assert [event.data["code"] for event in intruder.events] == ["forbidden", "forbidden"]
    assert [event.data["ref"] for event in intruder.events] == ["e1", "d1"]
    [stored] = await message_db.recent()
    assert stored.text == "mine"


async def test_edit_does_not_change_who_may_delete(hub, sessions, message_db, alice, bob):
    author = await join(hub, sessions, alice)
    other = await join(hub, sessions, bob)
    message = await hub.post(author, "v1")
    await hub.edit(author, message.id, "v2")
    other.clear()

    await hub.dispatch(other, {"type": "delete", "data": {"message_id": message.id}})
    assert other.types() == [OutboundType.ERROR]

    await hub.delete(author, message.id)
    assert await message_db.recent() == []


async def test_delete_of_unknown_message_is_a_no_op(hub, sessions, alice, bob):
    first = await join(hub, sessions, alice)
    second = await join(hub, sessions, bob)
    first.clear()
    second.clear()

    await hub.dispatch(second, {"type": "delete", "data": {"message_id": 99}})

    assert first.events == []
    [error] = second.events
    assert error.type == OutboundType.ERROR
    assert error.data["code"] == "message_not_found"


async def test_concurrent_posts_are_seen_in_the_same_order_by_everyone(hub, sessions, alice, bob):
    first = await join(hub, sessions, alice)
    second = await join(hub, sessions, bob)
    observer = await join(hub, sessions, bob)
    for connection in (first, second, observer):
        connection.clear()

    posts = [hub.post(first, f"a{i}") for i in range(10)] + [hub.post(second, f"b{i}") for i in range(10)]
    messages = await asyncio.gather(*posts)

    ids = [message.id for message in messages]
    assert len(set(ids)) == 20
    orders = [
        [event.data["message"]["id"] for event in connection.of_type(OutboundType.MESSAGE_POSTED)]
        for connection in (first, second, observer)
    ]
    assert orders[0] == orders[1] == orders[2]
    assert orders[0] == sorted(orders[0])


async def test_disconnect_updates_presence_and_announces_departure(hub, sessions, alice, bob):
    first = await join(hub, sessions, alice)
    second = await join(hub, sessions, bob)
    first.clear()

    await hub.disconnect(second)

    assert first.types() == [OutboundType.PRESENCE, OutboundType.USER_LEFT]
    assert usernames(first.events[0]) == ["alice"]
    assert first.events[1].data["user"]["name"] == "bob"
    assert second.state == ConnectionState.DISCONNECTED
    assert hub.online_users() == [alice]

    first.clear()
    await hub.disconnect(second)
    assert first.events == []


async def test_presence_counts_connections_not_users(hub, sessions, alice):
    tab_one = await join(hub, sessions, alice)
    await join(hub, sessions, alice)

    assert hub.online_users() == [alice, alice]
    assert usernames(tab_one.of_type(OutboundType.PRESENCE)[-1]) == ["alice", "alice"]


async def test_operations_require_authentication(hub):
    connection = FakeConnection()

    with pytest.raises(AuthenticationError):
        await hub.post(connection, "sneaky")

    await hub.dispatch(connection, {"type": "post", "data": {"text": "sneaky"}})
    [error] = connection.events
    assert error.data["code"] == "unauthenticated"


async def test_rejected_connection_cannot_post(hub):
    connection = FakeConnection()
    with pytest.raises(AuthenticationError):
        await hub.connect(connection, "forged")

    with pytest.raises(AuthenticationError):
        await hub.post(connection, "sneaky")


async def test_typing_is_relayed_to_others_only(hub, sessions, alice, bob):
    typist = await join(hub, sessions, alice)
    reader = await join(hub, sessions, bob)
    typist.clear()
    reader.clear()

    await hub.dispatch(typist, {"type": "typing", "data": {"is_typing": True}})
    await hub.dispatch(typist, {"type": "typing", "data": {"is_typing": False}})

    assert typist.events == []
    assert [event.data for event in reader.events] == [
        {"user_id": alice.id, "is_typing": True},
        {"user_id": alice.id, "is_typing": False},
    ]


async def test_disconnect_while_typing_sends_final_stop(hub, sessions, alice, bob):
    typist = await join(hub, sessions, alice)
    reader = await join(hub, sessions, bob)
    await hub.typing(typist, True)
    reader.clear()

    await hub.disconnect(typist)

    assert reader.types() == [OutboundType.TYPING, OutboundType.PRESENCE, OutboundType.USER_LEFT]
    assert reader.events[0].data == {"user_id": alice.id, "is_typing": False}


async def test_typing_timeout_clears_stale_indicator(sessions, message_db, clock, alice, bob):
    hub = BroadcastHub(sessions=sessions, messages=message_db, typing_timeout_seconds=0.01, clock=clock)
    typist = await join(hub, sessions, alice)
    reader = await join(hub, sessions, bob)
    await hub.typing(typist, True)
    reader.clear()

    await asyncio.sleep(0.05)

    [event] = reader.events
    assert event.data == {"user_id": alice.id, "is_typing": False}


async def test_invalid_frame_is_reported_to_sender(hub, sessions, alice, bob):
    sender = await join(hub, sessions, alice)
    other = await join(hub, sessions, bob)
    sender.clear()
    other.clear()

    await hub.dispatch(sender, {"type": "post", "data": {}, "ref": "p1"})
    await hub.dispatch(sender, None)

    assert other.events == []
    assert [event.data["code"] for event in sender.events] == ["invalid_event", "invalid_event"]
    assert sender.events[0].data["ref"] == "p1"


class FailingMessageDatabase(InMemoryMessageDatabase):
    async def append(self, author_id: int, text: str, timestamp: int) -> int:
        raise StorageError("disk full")


async def test_storage_failure_is_reported_and_not_broadcast(sessions, user_db, clock, alice, bob):
    hub = BroadcastHub(sessions=sessions, messages=FailingMessageDatabase(user_db), clock=clock)
    sender = await join(hub, sessions, alice)
    other = await join(hub, sessions, bob)
    sender.clear()
    other.clear()

    await hub.dispatch(sender, {"type": "post", "data": {"text": "hi"}})

    assert other.events == []
    [error] = sender.events
    assert error.data["code"] == "storage_error"


class BrokenHistoryDatabase(InMemoryMessageDatabase):
    broken = False

    async def recent(self, limit: int = 200) -> list:
        if self.broken:
            raise RuntimeError("history unavailable")
        return await super().recent(limit)


async def test_failed_join_is_rolled_back(sessions, user_db, clock, alice, bob):
    messages = BrokenHistoryDatabase(user_db)
    hub = BroadcastHub(sessions=sessions, messages=messages, clock=clock)
    present = await join(hub, sessions, alice)
    present.clear()
    messages.broken = True
    joiner = FakeConnection()

    with pytest.raises(RuntimeError):
        await hub.connect(joiner, await sessions.create(bob))

    assert hub.online_users() == [alice]
    assert joiner.state == ConnectionState.DISCONNECTED
    assert present.types() == [
        OutboundType.PRESENCE,
        OutboundType.USER_JOINED,
        OutboundType.PRESENCE,
        OutboundType.USER_LEFT,
    ]
    assert usernames(present.events[-2]) == ["alice"]


@pytest.fixture
async def sqlite_hub(sessions, clock):
    """Hub over an SQLite log, with alice and bob registered."""
    database = await open_database(":memory:")
    user_db = SQLiteUserDatabase(database)
    alice = (await user_db.create_user("alice", "hash", "#f00", "#ALICE1")).to_user()
    bob = (await user_db.create_user("bob", "hash", "#00f", "#BOB001")).to_user()
    hub = BroadcastHub(sessions=sessions, messages=SQLiteMessageDatabase(database), clock=clock)
    yield hub, database, alice, bob
    await database.close()


async def test_sqlite_failure_while_handling_a_frame_is_reported(sqlite_hub, sessions):
    hub, database, alice, bob = sqlite_hub
    sender = await join(hub, sessions, alice)
    other = await join(hub, sessions, bob)
    sender.clear()
    other.clear()
    await database.connection.execute("DROP TABLE messages")

    await hub.dispatch(sender, {"type": "delete", "data": {"message_id": 1}, "ref": "d1"})

    assert other.events == []
    [error] = sender.events
    assert error.type == OutboundType.ERROR
    assert error.data["code"] == "storage_error"
    assert error.data["ref"] == "d1"


async def test_sqlite_failure_while_loading_history_keeps_the_joiner(sqlite_hub, sessions):
    hub, database, alice, bob = sqlite_hub
    first = await join(hub, sessions, alice)
    await database.connection.execute("DROP TABLE messages")

    second = await join(hub, sessions, bob)

    assert second.types() == [OutboundType.PRESENCE, OutboundType.ERROR]
    assert second.events[1].data["code"] == "storage_error"
    assert hub.online_users() == [alice, bob]

    await hub.disconnect(second)
    assert hub.online_users() == [alice]
    assert first.of_type(OutboundType.USER_LEFT)[0].data["user"]["name"] == "bob"


async def test_close_all_disconnects_everyone(hub, sessions, alice, bob):
    first = await join(hub, sessions, alice)
    second = await join(hub, sessions, bob)

    await hub.close_all()

    assert hub.connection_count == 0
    assert hub.online_users() == []
    assert first.closed_with == (1001, "Server shutting down")
    assert second.closed_with == (1001, "Server shutting down")


async def test_walkthrough(hub, sessions, alice, bob):
    """Two users meet, chat, and one of them cleans up after themselves."""
    a = await join(hub, sessions, alice)
    assert usernames(a.events[0]) == ["alice"]
    assert a.events[1].data["messages"] == []

    await hub.post(a, "hi")
    [posted] = a.of_type(OutboundType.MESSAGE_POSTED)
    assert posted.data["message"]["id"] == 1
    assert posted.data["message"]["user"]["name"] == "alice"
    a.clear()

    b = await join(hub, sessions, bob)
    assert usernames(b.events[0]) == ["alice", "bob"]
    assert [m["text"] for m in b.events[1].data["messages"]] == ["hi"]
    assert b.of_type(OutboundType.USER_JOINED) == []
    assert [e.data["user"]["name"] for e in a.of_type(OutboundType.USER_JOINED)] == ["bob"]
    a.clear()
    b.clear()

    await hub.delete(a, 1)
    assert a.types() == b.types() == [OutboundType.MESSAGE_DELETED]
    assert a.events[0].data == {"message_id": 1}
    a.clear()
    b.clear()

    await hub.dispatch(b, {"type": "delete", "data": {"message_id": 99}})
    assert a.events == []
    assert b.of_type(OutboundType.MESSAGE_DELETED) == []
