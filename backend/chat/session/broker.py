from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from chat.messaging.types import RoomErrorMessage, UserCountMessage
from chat.session.channel import DEFAULT_MAX_PENDING, OutboundChannel
from chat.session.content_filter import clean
from chat.session.exceptions import BrokerError
from chat.session.lifecycle import LifecycleManager
from chat.session.matchmaker import Matchmaker
from chat.session.outbox import Outbox
from chat.session.registry import ParticipantRegistry
from chat.session.relay import SignalRelay, epoch_millis
from chat.session.room_store import RoomStore, generate_room_code
from chat.session.waiting_pool import WaitingPool

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import JsonValue

    from chat.messaging.protocol import ConnectionProtocol
    from chat.messaging.types import SignalKind
    from chat.session.models import Participant, Room

logger = structlog.get_logger()



# How long an operation waits for its frames to be written before returning.
DEFAULT_SEND_TIMEOUT = 5.0


class SessionBroker:
    """Single owner of all pairing state for one server process.

    Holds the participant registry, the waiting pool and the room store,
    and is the only entry point that mutates them. Every public operation
    changes state and queues the messages it produced under one lock, so
    operations never interleave and each connection sees its messages in
    the order the state changed. Writing to sockets happens after the lock
    is released, through one OutboundChannel per connection; a client that
    stops reading never holds up anyone else.
    """

    def __init__(
        self,
        *,
        content_filter: Callable[[str], str] = clean,
        code_factory: Callable[[], str] = generate_room_code,
        clock: Callable[[], int] = epoch_millis,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        max_pending: int = DEFAULT_MAX_PENDING,
    ) -> None:
        self._registry = ParticipantRegistry()
        self._pool = WaitingPool()
        self._rooms = RoomStore(code_factory)
        self._lifecycle = LifecycleManager(self._registry, self._pool, self._rooms)
        self._matchmaker = Matchmaker(self._registry, self._pool, self._rooms, self._lifecycle)
        self._relay = SignalRelay(self._registry, self._rooms, content_filter=content_filter, clock=clock)
        self._channels: dict[str, OutboundChannel] = {}  # participant_id -> channel
        self._lock = asyncio.Lock()
        self._send_timeout = send_timeout
        self._max_pending = max_pending

    # --- Introspection ---

    @property
    def online_count(self) -> int:
        return len(self._registry)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def waiting_count(self) -> int:
        return len(self._pool)

    def get_participant(self, participant_id: str) -> Participant | None:
        return self._registry.get(participant_id)

    def get_room(self, code: str) -> Room | None:
        return self._rooms.get(code)

    # --- Connection lifecycle ---

    async def connect(self, connection: ConnectionProtocol) -> None:
        async with self._lock:
            self._registry.register(connection.connection_id)
            self._channels[connection.connection_id] = OutboundChannel(connection, self._max_pending)
            logger.info("participant connected", participant_id=connection.connection_id, online=self.online_count)
            pending = self._broadcast_user_count()
        await self._flush(pending)

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        """Tear down everything the connection held and drop its record."""
        async with self._lock:
            outbox = Outbox()
            removed = self._lifecycle.disconnect(connection.connection_id, outbox)
            channel = self._channels.pop(connection.connection_id, None)
            pending: list[asyncio.Future[None]] = []
            if removed is not None:
                logger.info(
                    "participant disconnected",
                    participant_id=connection.connection_id,
                    online=self.online_count,
                )
                pending = self._dispatch(outbox) + self._broadcast_user_count()
        if channel is not None:
            await channel.close()
        await self._flush(pending)

    async def close(self) -> None:
        """Stop every writer task. Used on application shutdown."""
        async with self._lock:
            channels = list(self._channels.values())
            self._channels.clear()
        for channel in channels:
            await channel.close()

    # --- Matchmaking ---

    async def find_random_partner(self, connection: ConnectionProtocol) -> None:
        await self._run_room_operation(
            connection,
            lambda outbox: self._matchmaker.find_random_partner(connection.connection_id, outbox),
        )

    async def create_room(self, connection: ConnectionProtocol) -> None:
        await self._run_room_operation(
            connection,
            lambda outbox: self._matchmaker.create_room(connection.connection_id, outbox),
        )

    async def join_room(self, connection: ConnectionProtocol, code: str) -> None:
        await self._run_room_operation(
            connection,
            lambda outbox: self._matchmaker.join_room(connection.connection_id, code, outbox),
        )

    async def leave_room(self, connection: ConnectionProtocol) -> None:
        await self._run_room_operation(
            connection,
            lambda outbox: self._lifecycle.leave(connection.connection_id, outbox),
        )

    # --- Relay ---

    async def relay_signal(
        self,
        connection: ConnectionProtocol,
        room_id: str,
        kind: SignalKind,
        payload: JsonValue,
    ) -> None:
        async with self._lock:
            outbox = Outbox()
            self._relay.relay_signal(connection.connection_id, room_id, kind, payload, outbox)
            pending = self._dispatch(outbox)
        await self._flush(pending)

    async def relay_chat(self, connection: ConnectionProtocol, room_id: str, message: JsonValue) -> None:
        async with self._lock:
            outbox = Outbox()
            self._relay.relay_chat(connection.connection_id, room_id, message, outbox)
            pending = self._dispatch(outbox)
        await self._flush(pending)

    # --- Internals ---

    async def _run_room_operation(
        self,
        connection: ConnectionProtocol,
        operation: Callable[[Outbox], object],
    ) -> None:
        """Run a matchmaking or leave step; report BrokerError to the caller as room-error."""
        async with self._lock:
            outbox = Outbox()
            try:
                operation(outbox)
            except BrokerError as e:
                logger.warning(
                    "room operation rejected",
                    participant_id=connection.connection_id,
                    error_code=e.code,
                    error_message=e.message,
                )
                outbox = Outbox()
                outbox.emit(connection.connection_id, RoomErrorMessage(code=e.code, message=e.message))
            pending = self._dispatch(outbox)
        await self._flush(pending)

    def _dispatch(self, outbox: Outbox) -> list[asyncio.Future[None]]:
        """Queue every outbox entry on its recipient's channel, in order."""
        pending = []
        for participant_id, message in outbox.entries:
            channel = self._channels.get(participant_id)
            if channel is not None:
                pending.append(channel.put(message.model_dump()))
        return pending

    def _broadcast_user_count(self) -> list[asyncio.Future[None]]:
        payload = UserCountMessage(count=self.online_count).model_dump()
        return [channel.put(payload) for channel in self._channels.values()]

    async def _flush(self, pending: list[asyncio.Future[None]]) -> None:
        """Wait, up to the send timeout, for queued frames to be written."""
        if not pending:
            return
        _, not_done = await asyncio.wait(pending, timeout=self._send_timeout)
        if not_done:
            logger.warning("delivery still pending after timeout", pending=len(not_done))
