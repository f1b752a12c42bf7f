"""
FastAPI application factory.

'create_app' wires the HTTP routes, the bearer auth provider and the realtime
WebSocket endpoint around one 'ChatController'. Storage backends are opened in
the lifespan handler, selected by 'Settings.backend':

    memory  - in-process dictionaries, everything lost on restart.
    sqlite  - aiosqlite database at 'Settings.db_path'.

Sessions always live in memory; they are created by the factory so the auth
provider can be bound before the app starts.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from loguru import logger

from realtime_chat.api.auth.bearer import BearerTokenProvider
from realtime_chat.api.websocket import router as websocket_router
from realtime_chat.chat_database.in_memory import InMemoryMessageDatabase, InMemoryUserDatabase
from realtime_chat.chat_database.sqlite import SQLiteMessageDatabase, SQLiteUserDatabase, open_database
from realtime_chat.config import Settings
from realtime_chat.controller import ChatController, LoginInput, ProfileInput, RegisterInput
from realtime_chat.errors import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from realtime_chat.realtime.hub import BroadcastHub
from realtime_chat.sessions.base import Session, SessionStore
from realtime_chat.sessions.in_memory import InMemorySessionStore
from realtime_chat.utils.time import days_to_milliseconds

STATUS_CODES: list[tuple[type[ChatError], int]] = [
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (ValidationError, 400),
    (NotFoundError, 404),
    (ConflictError, 409),
    (StorageError, 500),
]


def status_code_for(exc: ChatError) -> int:
    return next((status for error_type, status in STATUS_CODES if isinstance(exc, error_type)), 500)


async def build_controller(settings: Settings, sessions: SessionStore) -> ChatController:
    """Open the configured storage backend and assemble the controller around it."""
    if settings.backend == "sqlite":
        database = await open_database(settings.db_path)
        user_db = SQLiteUserDatabase(database)
        message_db = SQLiteMessageDatabase(database)
        logger.info(f"Storage backend: SQLite ({settings.db_path})")
    else:
        user_db = InMemoryUserDatabase()
        message_db = InMemoryMessageDatabase(user_db)
        logger.info("Storage backend: in-memory")

    hub = BroadcastHub(
        sessions=sessions,
        messages=message_db,
        typing_timeout_seconds=settings.typing_timeout_seconds,
        history_limit=settings.history_limit,
    )
    return ChatController(user_db=user_db, message_db=message_db, sessions=sessions, hub=hub)


async def sweep_sessions(sessions: SessionStore, interval_seconds: float) -> None:
    """Periodically drop expired sessions. Validation stays lazy either way."""
    while True:
        await asyncio.sleep(interval_seconds)
        await sessions.purge_expired()


def get_controller(request: Request) -> ChatController:
    return request.app.state.controller


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or Settings()
    sessions = InMemorySessionStore(ttl_ms=days_to_milliseconds(settings.session_ttl_days))
    auth = BearerTokenProvider(sessions)

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        controller = await build_controller(settings, sessions)
        app.state.controller = controller
        sweeper = None
        if settings.session_sweep_seconds:
            sweeper = asyncio.create_task(sweep_sessions(sessions, settings.session_sweep_seconds))
        try:
            yield
        finally:
            if sweeper is not None:
                sweeper.cancel()
                await asyncio.gather(sweeper, return_exceptions=True)
            await controller.close()
            logger.info("Chat server stopped")

    app = FastAPI(title="realtime-chat", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(ChatError)
    async def handle_chat_error(request: Request, exc: ChatError) -> JSONResponse:
        status = status_code_for(exc)
        if status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.message, "code": exc.code})

    @app.post("/api/register")
    async def register(
        user_input: RegisterInput, controller: ChatController = Depends(get_controller)
    ) -> dict[str, Any]:
        user = await controller.register(user_input)
        return {"success": True, "user_id": user.id, "unique_id": user.unique_id}

    @app.post("/api/login")
    async def login(user_input: LoginInput, controller: ChatController = Depends(get_controller)) -> dict[str, Any]:
        result = await controller.login(user_input)
        return {"success": True, "token": result.token, "user": result.user.model_dump()}

    @app.post("/api/update-profile")
    async def update_profile(
        profile: ProfileInput,
        session: Session = Depends(auth.get_current_session),
        controller: ChatController = Depends(get_controller),
    ) -> dict[str, Any]:
        user = await controller.update_profile(session.token, profile)
        return {"success": True, "user": user.model_dump()}

    @app.get("/api/online")
    async def online(
        session: Session = Depends(auth.get_current_session),
        controller: ChatController = Depends(get_controller),
    ) -> dict[str, Any]:
        return {"users": [user.model_dump() for user in controller.online_users()]}

    auth.bind_to_app(app)
    app.include_router(websocket_router)

    if settings.static_dir is not None:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
