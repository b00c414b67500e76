from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from chat.messaging.types import ReceiveChatMessage, build_signal_relay
from chat.session.content_filter import clean
from chat.session.models import ParticipantState

if TYPE_CHECKING:
    from collections.abc import Callable

    from pydantic import JsonValue

    from chat.messaging.types import SignalKind
    from chat.session.outbox import Outbox
    from chat.session.registry import ParticipantRegistry
    from chat.session.room_store import RoomStore

logger = structlog.get_logger()

INVALID_MESSAGE_PLACEHOLDER = "[invalid message]"


def epoch_millis() -> int:
    return int(time.time() * 1000)


class SignalRelay:
    """Forward handshake payloads and chat text to the other room occupant.

    Read-only with respect to broker state. A message is relayed only when
    the sender is IN_CHAT and names its own room; anything else is dropped
    without telling either side.
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        rooms: RoomStore,
        *,
        content_filter: Callable[[str], str] = clean,
        clock: Callable[[], int] = epoch_millis,
    ) -> None:
        self._registry = registry
        self._rooms = rooms
        self._content_filter = content_filter
        self._clock = clock

    def relay_signal(
        self,
        sender_id: str,
        room_id: str,
        kind: SignalKind,
        payload: JsonValue,
        outbox: Outbox,
    ) -> bool:
        """Forward an opaque handshake payload. Return True if it was relayed."""
        recipient_id = self._authorized_recipient(sender_id, room_id, kind)
        if recipient_id is None:
            return False
        outbox.emit(recipient_id, build_signal_relay(kind, payload))
        logger.debug("signal relayed", kind=kind, room_id=room_id)
        return True

    def relay_chat(self, sender_id: str, room_id: str, message: JsonValue, outbox: Outbox) -> bool:
        """Filter, timestamp and forward chat text. Return True if it was relayed."""
        recipient_id = self._authorized_recipient(sender_id, room_id, "chat")
        if recipient_id is None:
            return False
        text = message.strip() if isinstance(message, str) else ""
        cleaned = self._content_filter(text) if text else INVALID_MESSAGE_PLACEHOLDER
        outbox.emit(recipient_id, ReceiveChatMessage(message=cleaned, timestamp=self._clock()))
        return True

    def _authorized_recipient(self, sender_id: str, room_id: str, kind: str) -> str | None:
        sender = self._registry.get(sender_id)
        if sender is None or sender.state is not ParticipantState.IN_CHAT or sender.room_id != room_id:
            logger.debug("relay dropped, sender not in room", kind=kind, participant_id=sender_id, room_id=room_id)
            return None
        room = self._rooms.get(room_id)
        recipient_id = room.other_member(sender_id) if room is not None else None
        if recipient_id is None or recipient_id != sender.partner_id:
            logger.debug("relay dropped, no partner in room", kind=kind, participant_id=sender_id, room_id=room_id)
            return None
        return recipient_id
