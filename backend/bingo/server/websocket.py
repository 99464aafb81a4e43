from __future__ import annotations

import contextlib
import re
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from bingo.logic.enums import ErrorCode
from bingo.messaging.encoder import DecodeError, decode
from bingo.messaging.protocol import ConnectionProtocol
from bingo.messaging.types import ErrorMessage
from bingo.server.rate_limit import TokenBucket

logger = structlog.get_logger()

if TYPE_CHECKING:
    from bingo.messaging.router import MessageRouter

_ROOM_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,50}$")

# Rate limit: 20 messages/sec sustained, burst of 40.
# Marking cells is the chattiest command; a fast player marks a few per call.
_RATE_LIMIT_RATE = 20.0
_RATE_LIMIT_BURST = 40

# Disconnect after this many consecutive decode errors
_MAX_DECODE_ERRORS = 5


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, room_id: str, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._room_id = room_id
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    @property
    def room_id(self) -> str:
        return self._room_id

    async def send_text(self, data: str) -> None:
        try:
            await self._websocket.send_text(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_text(self) -> str:
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket already disconnected")
        text = message.get("text")
        if text is not None:
            return text
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter) -> None:
    room_id = websocket.path_params["room_id"]
    if not _ROOM_ID_PATTERN.match(room_id):
        await websocket.close(code=4000, reason="invalid_room_id")
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket, room_id=room_id)
    structlog.contextvars.bind_contextvars(room_id=room_id, connection_id=connection.connection_id)
    logger.info("websocket connected")
    if not await router.handle_connect(connection):
        structlog.contextvars.clear_contextvars()
        return

    bucket = TokenBucket(rate=_RATE_LIMIT_RATE, burst=_RATE_LIMIT_BURST)
    decode_errors = 0

    try:
        while True:
            raw = await connection.receive_text()

            # Always decode to maintain the malformed-message strike counter.
            try:
                data = decode(raw)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(
                    ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message="Invalid message format").to_wire(),
                )
                if decode_errors >= _MAX_DECODE_ERRORS:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=4004, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0

            if not bucket.consume():
                await connection.send_message(
                    ErrorMessage(code=ErrorCode.RATE_LIMITED, message="Too many messages").to_wire(),
                )
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):  # fmt: skip
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
