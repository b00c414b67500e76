from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from chat.messaging.types import PartnerDisconnectedMessage
from chat.session.models import ParticipantState, RoomOrigin

if TYPE_CHECKING:
    from chat.session.models import Participant
    from chat.session.outbox import Outbox
    from chat.session.registry import ParticipantRegistry
    from chat.session.room_store import RoomStore
    from chat.session.waiting_pool import WaitingPool

logger = structlog.get_logger()


class LifecycleManager:
    """Tear down queue and room membership when a participant departs.

    leave() is the explicit, still-connected path (the record stays and can
    re-enter matchmaking); disconnect() is the transport-loss path and also
    drops the record. Both share _teardown so the remaining partner is
    notified exactly once either way.
    """

    def __init__(self, registry: ParticipantRegistry, pool: WaitingPool, rooms: RoomStore) -> None:
        self._registry = registry
        self._pool = pool
        self._rooms = rooms

    def leave(self, participant_id: str, outbox: Outbox) -> None:
        """Return a participant to DISCONNECTED. No-op if it already is."""
        participant = self._registry.get(participant_id)
        if participant is None or not participant.is_occupied:
            return
        self._teardown(participant, outbox)

    def disconnect(self, participant_id: str, outbox: Outbox) -> Participant | None:
        """Tear down and unregister. Return the removed record, or None if unknown."""
        participant = self._registry.get(participant_id)
        if participant is None:
            return None
        if participant.is_occupied:
            self._teardown(participant, outbox)
        return self._registry.remove(participant_id)

    def _teardown(self, participant: Participant, outbox: Outbox) -> None:
        participant_id = participant.participant_id
        room_id = participant.room_id

        if participant.state is ParticipantState.WAITING:
            if not self._pool.discard(participant_id) and room_id is not None:
                self._discard_pending_code_room(room_id, participant_id)
            logger.info("participant stopped waiting", participant_id=participant_id, room_id=room_id)

        elif participant.state is ParticipantState.IN_CHAT:
            if room_id is not None:
                self._rooms.discard(room_id)
            partner = self._registry.get(participant.partner_id) if participant.partner_id else None
            if partner is not None and partner.partner_id == participant_id:
                partner.reset()
                outbox.emit(partner.participant_id, PartnerDisconnectedMessage())
            logger.info(
                "room closed",
                room_id=room_id,
                participant_id=participant_id,
                partner_id=partner.participant_id if partner is not None else None,
            )

        participant.reset()

    def _discard_pending_code_room(self, room_id: str, participant_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is not None and room.origin is RoomOrigin.CODE and room.members == [participant_id]:
            self._rooms.discard(room_id)
