import asyncio

from realtime_chat.realtime.typing_state import TypingAggregator


async def test_signal_tracks_typing_connections(alice):
    aggregator = TypingAggregator()

    state = aggregator.signal("c1", alice, True)
    assert state.is_typing is True
    assert state.user_id == alice.id
    assert aggregator.is_typing("c1")

    state = aggregator.signal("c1", alice, False)
    assert state.is_typing is False
    assert not aggregator.is_typing("c1")


async def test_clear_reports_stop_only_when_typing(alice):
    aggregator = TypingAggregator()
    assert aggregator.clear("c1") is None

    aggregator.signal("c1", alice, True)
    stopped = aggregator.clear("c1")

    assert stopped is not None
    assert stopped.is_typing is False
    assert aggregator.typing_users() == []


async def test_no_timeout_by_default(alice):
    expired = []
    aggregator = TypingAggregator(on_expire=lambda connection_id, state: expired.append(connection_id))

    aggregator.signal("c1", alice, True)
    await asyncio.sleep(0.05)

    assert expired == []
    assert aggregator.is_typing("c1")


async def test_timeout_clears_stale_entry(alice):
    expired = []
    aggregator = TypingAggregator(
        timeout_seconds=0.01, on_expire=lambda connection_id, state: expired.append((connection_id, state))
    )

    aggregator.signal("c1", alice, True)
    await asyncio.sleep(0.05)

    assert not aggregator.is_typing("c1")
    [(connection_id, state)] = expired
    assert connection_id == "c1"
    assert state.is_typing is False


async def test_new_signal_restarts_timer(alice):
    expired = []
    aggregator = TypingAggregator(timeout_seconds=0.05, on_expire=lambda *args: expired.append(args))

    aggregator.signal("c1", alice, True)
    await asyncio.sleep(0.03)
    aggregator.signal("c1", alice, True)
    await asyncio.sleep(0.03)
    assert expired == []

    aggregator.signal("c1", alice, False)
    await asyncio.sleep(0.08)
    assert expired == []
