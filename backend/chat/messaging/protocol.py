"""Transport-neutral view of one client connection."""

from abc import ABC, abstractmethod
from typing import Any

from chat.messaging.encoder import decode, encode


class ConnectionProtocol(ABC):
    """
    A bidirectional message channel to one participant.

    The broker and router only see this interface, so they can be driven
    by MockConnection in tests instead of a real WebSocket.
    """

    @property
    @abstractmethod
    def connection_id(self) -> str:
        """Identity of the connection; doubles as the participant id."""
        ...

    @abstractmethod
    async def send_bytes(self, data: bytes) -> None: ...

    @abstractmethod
    async def receive_bytes(self) -> bytes: ...

    @abstractmethod
    async def close(self, code: int = 1000, reason: str = "") -> None: ...

    async def send_message(self, data: dict[str, Any]) -> None:
        await self.send_bytes(encode(data))

    async def receive_message(self) -> dict[str, Any]:
        return decode(await self.receive_bytes())
