from __future__ import annotations

import asyncio
import contextlib
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from chat.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

# A client this far behind is not reading; further frames are dropped.
DEFAULT_MAX_PENDING = 256


class OutboundChannel:
    """Ordered, non-blocking delivery to one connection.

    put() queues a frame without awaiting, so the broker can hand out
    messages while it holds its lock. A dedicated writer task drains the
    queue in order; a slow or stalled reader only delays its own frames.
    Each put() returns a future that resolves once the frame was written,
    failed, or was dropped.
    """

    def __init__(self, connection: ConnectionProtocol, max_pending: int = DEFAULT_MAX_PENDING) -> None:
        self._connection = connection
        self._queue: asyncio.Queue[tuple[dict[str, Any], asyncio.Future[None]]] = asyncio.Queue(max_pending)
        self._writer = asyncio.create_task(self._drain(), name=f"send:{connection.connection_id}")

    @property
    def connection_id(self) -> str:
        return self._connection.connection_id

    def put(self, payload: dict[str, Any]) -> asyncio.Future[None]:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        try:
            self._queue.put_nowait((payload, future))
        except asyncio.QueueFull:
            logger.warning(
                "send queue full, dropping message",
                participant_id=self.connection_id,
                message_type=payload.get("type"),
            )
            future.set_result(None)
        return future

    async def close(self) -> None:
        """Stop the writer and release anyone waiting on unsent frames."""
        self._writer.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._writer
        while not self._queue.empty():
            _, future = self._queue.get_nowait()
            if not future.done():
                future.set_result(None)

    async def _drain(self) -> None:
        while True:
            payload, future = await self._queue.get()
            try:
                await self._connection.send_message(payload)
            except (RuntimeError, OSError) as e:
                # A dead socket is cleaned up by its own disconnect.
                logger.debug("send failed", participant_id=self.connection_id, error=str(e))
            finally:
                if not future.done():
                    future.set_result(None)
