"""Bearer-token authentication against the session store."""

from fastapi import Depends, FastAPI, Request

from realtime_chat.api.auth.base import AuthProvider
from realtime_chat.errors import AuthenticationError
from realtime_chat.sessions.base import Session, SessionStore

BEARER_PREFIX = "Bearer "


def extract_bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX) :].strip() or None


class BearerTokenProvider(AuthProvider):
    def __init__(self, sessions: SessionStore) -> None:
        self.sessions = sessions

    async def get_current_session(self, request: Request) -> Session:
        token = extract_bearer_token(request.headers.get("authorization"))
        if token is None:
            raise AuthenticationError("Missing token")
        return await self.sessions.validate(token)

    def bind_to_app(self, app: FastAPI) -> None:
        @app.post("/api/logout")
        async def logout(session: Session = Depends(self.get_current_session)) -> dict[str, bool]:
            await self.sessions.revoke(session.token)
            return {"success": True}
