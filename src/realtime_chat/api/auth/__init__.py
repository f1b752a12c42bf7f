from realtime_chat.api.auth.base import AuthProvider
from realtime_chat.api.auth.bearer import BearerTokenProvider

__all__ = ["AuthProvider", "BearerTokenProvider"]
