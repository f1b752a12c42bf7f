from realtime_chat.realtime.connection import Connection, ConnectionState, QueuedConnection
from realtime_chat.realtime.hub import BroadcastHub
from realtime_chat.realtime.presence import PresenceTracker
from realtime_chat.realtime.typing_state import TypingAggregator, TypingState

__all__ = [
    "BroadcastHub",
    "Connection",
    "ConnectionState",
    "PresenceTracker",
    "QueuedConnection",
    "TypingAggregator",
    "TypingState",
]
