from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING
from uuid import uuid4

import structlog
from starlette.websockets import WebSocket, WebSocketDisconnect

from chat.messaging.encoder import DecodeError, decode
from chat.messaging.protocol import ConnectionProtocol
from chat.messaging.types import ErrorCode, ErrorMessage
from chat.server.rate_limit import TokenBucket

if TYPE_CHECKING:
    from chat.messaging.router import MessageRouter
    from chat.server.settings import ChatServerSettings

logger = structlog.get_logger()

_CLOSE_FORBIDDEN_ORIGIN = 4003
_CLOSE_TOO_MANY_DECODE_ERRORS = 4004


class WebSocketConnection(ConnectionProtocol):
    def __init__(self, websocket: WebSocket, connection_id: str | None = None) -> None:
        self._websocket = websocket
        self._connection_id = connection_id or str(uuid4())

    @property
    def connection_id(self) -> str:
        return self._connection_id

    async def send_bytes(self, data: bytes) -> None:
        try:
            await self._websocket.send_bytes(data)
        except WebSocketDisconnect:
            raise ConnectionError("WebSocket already disconnected") from None

    async def receive_bytes(self) -> bytes:
        """Return the next frame's payload; text frames are passed on as UTF-8 bytes."""
        message = await self._websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise ConnectionError("WebSocket disconnected")
        if message.get("bytes") is not None:
            return message["bytes"]
        return (message.get("text") or "").encode()

    async def close(self, code: int = 1000, reason: str = "") -> None:
        with contextlib.suppress(WebSocketDisconnect, RuntimeError):
            await self._websocket.close(code=code, reason=reason)


def _check_origin(websocket: WebSocket, allowed_origin: str | None) -> bool:
    if not allowed_origin:
        return True
    return websocket.headers.get("origin", "") == allowed_origin


async def websocket_endpoint(websocket: WebSocket, router: MessageRouter, settings: ChatServerSettings) -> None:
    if not _check_origin(websocket, settings.ws_allowed_origin):
        await websocket.close(code=_CLOSE_FORBIDDEN_ORIGIN, reason="forbidden_origin")
        return

    await websocket.accept()

    connection = WebSocketConnection(websocket)
    structlog.contextvars.bind_contextvars(participant_id=connection.connection_id)
    logger.info("websocket connected")
    await router.handle_connect(connection)

    bucket = TokenBucket.from_settings(settings)
    decode_errors = 0

    try:
        while True:
            raw = await connection.receive_bytes()

            # Decode before rate limiting so garbage always counts as a strike.
            try:
                data = decode(raw)
            except DecodeError as e:
                decode_errors += 1
                logger.warning("decode error", error=str(e), strikes=decode_errors)
                await connection.send_message(
                    ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message=str(e)).model_dump(),
                )
                if decode_errors >= settings.max_decode_errors:
                    logger.info("too many decode errors, disconnecting")
                    await connection.close(code=_CLOSE_TOO_MANY_DECODE_ERRORS, reason="too_many_decode_errors")
                    return
                continue

            decode_errors = 0

            if not bucket.try_acquire():
                retry_ms = int(bucket.retry_after() * 1000) + 1
                logger.debug("frame rate limited", retry_after_ms=retry_ms)
                await connection.send_message(
                    ErrorMessage(
                        code=ErrorCode.RATE_LIMITED,
                        message=f"Too many messages, retry in {retry_ms} ms",
                    ).model_dump(),
                )
                continue
            await router.handle_message(connection, data)
    except (WebSocketDisconnect, RuntimeError, ConnectionError):
        pass
    finally:
        logger.info("websocket disconnected")
        await router.handle_disconnect(connection)
        structlog.contextvars.clear_contextvars()
