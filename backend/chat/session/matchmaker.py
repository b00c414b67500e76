from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from chat.messaging.types import ChatStartMessage, InitiatorMessage, RoomCreatedMessage, WaitingMessage
from chat.session.exceptions import (
    InvalidInputError,
    NotAuthorizedError,
    RoomFullError,
    RoomNotFoundError,
    SelfJoinError,
)
from chat.session.models import ParticipantState, RoomOrigin
from chat.session.room_store import normalize_room_code

if TYPE_CHECKING:
    from chat.session.lifecycle import LifecycleManager
    from chat.session.models import Participant, Room
    from chat.session.outbox import Outbox
    from chat.session.registry import ParticipantRegistry
    from chat.session.room_store import RoomStore
    from chat.session.waiting_pool import WaitingPool

logger = structlog.get_logger()


class Matchmaker:
    """Pair participants at random or through a shared room code.

    The side that completes a pair (the newly arriving random seeker, or the
    code joiner) is always the handshake initiator, so exactly one peer
    opens the connection.

    Code rooms and the random queue are disjoint: a participant holding a
    fresh room code is never picked by random matchmaking.
    """

    def __init__(
        self,
        registry: ParticipantRegistry,
        pool: WaitingPool,
        rooms: RoomStore,
        lifecycle: LifecycleManager,
    ) -> None:
        self._registry = registry
        self._pool = pool
        self._rooms = rooms
        self._lifecycle = lifecycle

    def find_random_partner(self, participant_id: str, outbox: Outbox) -> Room | None:
        """Pair with the longest waiter, or join the queue. Return the new room, if any."""
        participant = self._require(participant_id)
        # Allocate before touching any state so an allocation failure changes nothing.
        room_code = self._rooms.allocate_code() if self._pool.has_other(participant_id) else None
        self._lifecycle.leave(participant_id, outbox)

        partner = self._pop_waiting_partner()
        if partner is None:
            participant.enter_waiting()
            self._pool.enqueue(participant_id)
            outbox.emit(participant_id, WaitingMessage())
            logger.info("participant queued", participant_id=participant_id, waiting=len(self._pool))
            return None

        room = self._rooms.create(RoomOrigin.RANDOM, [participant_id, partner.participant_id], room_code)
        self._start_chat(room, initiator=participant, other=partner, outbox=outbox)
        return room

    def create_room(self, participant_id: str, outbox: Outbox) -> Room:
        participant = self._require(participant_id)
        room_code = self._rooms.allocate_code()
        self._lifecycle.leave(participant_id, outbox)

        room = self._rooms.create(RoomOrigin.CODE, [participant_id], room_code)
        participant.enter_waiting(room.code)
        outbox.emit(participant_id, RoomCreatedMessage(code=room.code))
        logger.info("room created", room_id=room.code, participant_id=participant_id)
        return room

    def join_room(self, participant_id: str, code: object, outbox: Outbox) -> Room:
        """Join a code room as its second member.

        All validation happens before the joiner leaves whatever it was
        doing, so a rejected join changes nothing.
        """
        participant = self._require(participant_id)
        if not isinstance(code, str) or not code.strip():
            raise InvalidInputError("Invalid room code")

        room_code = normalize_room_code(code)
        room = self._rooms.get(room_code)
        if room is None:
            raise RoomNotFoundError("Room not found")
        if room.is_full:
            raise RoomFullError("Room is full")
        if room.has_member(participant_id):
            raise SelfJoinError("Cannot join your own room")

        creator = self._registry.get(room.members[0])
        if creator is None or creator.room_id != room_code:
            logger.warning("discarding orphaned room", room_id=room_code)
            self._rooms.discard(room_code)
            raise RoomNotFoundError("Room not found")

        self._lifecycle.leave(participant_id, outbox)
        room.add_member(participant_id)
        self._start_chat(room, initiator=participant, other=creator, outbox=outbox)
        return room

    def _require(self, participant_id: str) -> Participant:
        participant = self._registry.get(participant_id)
        if participant is None:
            raise NotAuthorizedError("Participant is not registered")
        return participant

    def _pop_waiting_partner(self) -> Participant | None:
        """Pop queued ids until one maps to a participant that is still waiting."""
        while (candidate_id := self._pool.pop_earliest()) is not None:
            candidate = self._registry.get(candidate_id)
            if candidate is not None and candidate.state is ParticipantState.WAITING and candidate.room_id is None:
                return candidate
            logger.warning("dropping stale waiting pool entry", participant_id=candidate_id)
        return None

    def _start_chat(self, room: Room, *, initiator: Participant, other: Participant, outbox: Outbox) -> None:
        initiator.enter_chat(room.code, other.participant_id)
        other.enter_chat(room.code, initiator.participant_id)
        for member_id in room.members:
            outbox.emit(member_id, ChatStartMessage(room_id=room.code))
        outbox.emit(initiator.participant_id, InitiatorMessage(initiator=True))
        logger.info(
            "chat started",
            room_id=room.code,
            origin=room.origin,
            initiator_id=initiator.participant_id,
            partner_id=other.participant_id,
        )
