"""
Authentication provider abstractions.

An 'AuthProvider' integrates with a FastAPI application to identify the current
session on every request. The toolkit ships one implementation:

'BearerTokenProvider' reads 'Authorization: Bearer <token>', validates it
against the session store and exposes '/api/logout'.
"""

from abc import ABC, abstractmethod

from fastapi import FastAPI, Request

from realtime_chat.sessions.base import Session


class AuthProvider(ABC):
    """
    Abstract base class for authentication backends.

    Implementors must supply a FastAPI dependency that resolves to the current
    session ('get_current_session') and a setup hook that registers all required
    routes with the application ('bind_to_app').
    """

    @abstractmethod
    async def get_current_session(self, request: Request) -> Session:
        """FastAPI dependency that returns the caller's live session.

        Raise 'AuthenticationError' if the request is not authenticated; the
        application's error handler turns it into a 401 response.
        """
        pass

    @abstractmethod
    def bind_to_app(self, app: FastAPI) -> None:
        """Register routes required by this provider."""
        pass
