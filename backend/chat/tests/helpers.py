"""Builders and WebSocket helpers shared by the chat tests."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from chat.messaging.encoder import decode, encode
from chat.session.lifecycle import LifecycleManager
from chat.session.matchmaker import Matchmaker
from chat.session.registry import ParticipantRegistry
from chat.session.relay import SignalRelay
from chat.session.room_store import RoomStore, generate_room_code
from chat.session.waiting_pool import WaitingPool

if TYPE_CHECKING:
    from collections.abc import Callable

FIXED_TIMESTAMP = 1_700_000_000_000


def scripted_codes(*codes: str) -> Callable[[], str]:
    """Code factory that yields the given codes in order, repeating the last forever."""
    remaining = list(codes)

    def factory() -> str:
        if len(remaining) > 1:
            return remaining.pop(0)
        return remaining[0]

    return factory


@dataclass
class Components:
    registry: ParticipantRegistry
    pool: WaitingPool
    rooms: RoomStore
    lifecycle: LifecycleManager
    matchmaker: Matchmaker
    relay: SignalRelay

    def register(self, *participant_ids: str) -> None:
        for participant_id in participant_ids:
            self.registry.register(participant_id)


def build_components(
    code_factory: Callable[[], str] = generate_room_code,
    content_filter: Callable[[str], str] = lambda text: text,
) -> Components:
    registry = ParticipantRegistry()
    pool = WaitingPool()
    rooms = RoomStore(code_factory)
    lifecycle = LifecycleManager(registry, pool, rooms)
    return Components(
        registry=registry,
        pool=pool,
        rooms=rooms,
        lifecycle=lifecycle,
        matchmaker=Matchmaker(registry, pool, rooms, lifecycle),
        relay=SignalRelay(registry, rooms, content_filter=content_filter, clock=lambda: FIXED_TIMESTAMP),
    )


def send_ws(ws, data: dict) -> None:
    """Send a MessagePack-encoded frame over a test WebSocket."""
    ws.send_bytes(encode(data))


def recv_ws(ws) -> dict:
    """Receive and decode a MessagePack frame from a test WebSocket."""
    return decode(ws.receive_bytes())
