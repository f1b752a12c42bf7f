"""
WebSocket transport for the broadcast hub.

The bearer token travels out of band, as the 'token' query parameter or an
'Authorization: Bearer' header on the upgrade request. The hub validates it
before the socket is accepted, so a rejected client gets a refused handshake
and never sees a single event.

After acceptance two tasks run per client: the receive loop below, which hands
each frame to 'BroadcastHub.dispatch', and the connection's outbox pump.
"""

import asyncio
import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from loguru import logger
from starlette.websockets import WebSocketState

from realtime_chat.api.auth.bearer import extract_bearer_token
from realtime_chat.errors import AuthenticationError
from realtime_chat.realtime.connection import ConnectionState, QueuedConnection
from realtime_chat.realtime.hub import BroadcastHub

UNAUTHORIZED_CLOSE_CODE = 4401

router = APIRouter()


class WebSocketConnection(QueuedConnection):
    def __init__(self, websocket: WebSocket) -> None:
        super().__init__()
        self.websocket = websocket

    async def send(self, payload: dict[str, Any]) -> None:
        await self.websocket.send_json(payload)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.stop_pump()
        if self.websocket.application_state == WebSocketState.CONNECTED:
            await self.websocket.close(code=code, reason=reason)


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        # 'dispatch' reports undecodable frames as invalid events
        return None


async def _pump(connection: WebSocketConnection) -> None:
    try:
        await connection.pump()
    except (WebSocketDisconnect, RuntimeError) as exc:
        logger.debug(f"Stopped sending to {connection!r}: {exc!r}")


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, token: str | None = None) -> None:
    hub: BroadcastHub = websocket.app.state.controller.hub
    token = token or extract_bearer_token(websocket.headers.get("authorization"))
    connection = WebSocketConnection(websocket)

    try:
        await hub.connect(connection, token)
    except AuthenticationError as exc:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason=exc.message)
        return

    pump_task: asyncio.Task | None = None
    try:
        await websocket.accept()
        pump_task = asyncio.create_task(_pump(connection))
        while True:
            text = await websocket.receive_text()
            await hub.dispatch(connection, _decode(text))
    except WebSocketDisconnect:
        pass
    except RuntimeError:
        # receive after a server-side close during shutdown
        if connection.state != ConnectionState.DISCONNECTED:
            raise
    finally:
        await hub.disconnect(connection)
        connection.stop_pump()
        if pump_task is not None:
            pump_task.cancel()
            await asyncio.gather(pump_task, return_exceptions=True)
