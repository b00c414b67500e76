import time
from dataclasses import dataclass, field
from enum import StrEnum

MAX_ROOM_MEMBERS = 2


class ParticipantState(StrEnum):
    DISCONNECTED = "disconnected"
    WAITING = "waiting"
    IN_CHAT = "in_chat"


class RoomOrigin(StrEnum):
    RANDOM = "random"
    CODE = "code"


@dataclass
class Participant:
    """One live connection tracked by the broker.

    Lifecycle:
    - Registered on connect in the DISCONNECTED state
    - WAITING while queued for a random partner or holding a fresh room code
    - IN_CHAT once its room has two members (partner_id is set only here)
    - Back to DISCONNECTED on leave or when the partner goes away
    - Removed from the registry only when the transport connection closes
    """

    participant_id: str
    state: ParticipantState = ParticipantState.DISCONNECTED
    room_id: str | None = None
    partner_id: str | None = None
    connected_at: float = field(default_factory=time.time)

    @property
    def is_occupied(self) -> bool:
        return self.state is not ParticipantState.DISCONNECTED

    def enter_waiting(self, room_id: str | None = None) -> None:
        self.state = ParticipantState.WAITING
        self.room_id = room_id
        self.partner_id = None

    def enter_chat(self, room_id: str, partner_id: str) -> None:
        self.state = ParticipantState.IN_CHAT
        self.room_id = room_id
        self.partner_id = partner_id

    def reset(self) -> None:
        self.state = ParticipantState.DISCONNECTED
        self.room_id = None
        self.partner_id = None


@dataclass
class Room:
    """A (potential) pair of participants sharing a 6-character code.

    Code rooms start with their creator alone; random rooms are created
    already full. Once two members are present the room is sealed.
    """

    code: str
    origin: RoomOrigin
    members: list[str] = field(default_factory=list)
    created_at: float = field(default_factory=time.monotonic)

    @property
    def is_full(self) -> bool:
        return len(self.members) >= MAX_ROOM_MEMBERS

    def has_member(self, participant_id: str) -> bool:
        return participant_id in self.members

    def other_member(self, participant_id: str) -> str | None:
        """Return the occupant that is not participant_id, or None."""
        for member in self.members:
            if member != participant_id:
                return member
        return None

    def add_member(self, participant_id: str) -> None:
        if self.is_full:
            raise ValueError(f"room {self.code} is full")
        if participant_id in self.members:
            raise ValueError(f"{participant_id} is already in room {self.code}")
        self.members.append(participant_id)
