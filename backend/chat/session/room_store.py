from __future__ import annotations

import re
import secrets
import string
from typing import TYPE_CHECKING

import structlog

from chat.session.models import Room, RoomOrigin

if TYPE_CHECKING:
    from collections.abc import Callable

logger = structlog.get_logger()

ROOM_CODE_LENGTH = 6
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
ROOM_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{ROOM_CODE_LENGTH}}}$")

# Collisions are astronomically unlikely; the cap turns a broken
# code factory into an error instead of a hang.
_MAX_CODE_ATTEMPTS = 1000


def generate_room_code() -> str:
    return "".join(secrets.choice(ROOM_CODE_ALPHABET) for _ in range(ROOM_CODE_LENGTH))


def normalize_room_code(code: str) -> str:
    return code.strip().upper()


class RoomStore:
    """Active rooms keyed by their 6-character code."""

    def __init__(self, code_factory: Callable[[], str] = generate_room_code) -> None:
        self._rooms: dict[str, Room] = {}  # code -> Room
        self._code_factory = code_factory

    def allocate_code(self) -> str:
        """Generate a code that no active room is using."""
        for _ in range(_MAX_CODE_ATTEMPTS):
            code = self._code_factory()
            if code not in self._rooms:
                return code
            logger.debug("room code collision, retrying", room_id=code)
        raise RuntimeError(f"could not allocate a free room code after {_MAX_CODE_ATTEMPTS} attempts")

    def create(self, origin: RoomOrigin, members: list[str], code: str | None = None) -> Room:
        """Store a new room under code, allocating a free one when none is given."""
        if code is None:
            code = self.allocate_code()
        elif code in self._rooms:
            raise ValueError(f"room code {code} is already in use")
        room = Room(code=code, origin=origin, members=list(members))
        self._rooms[room.code] = room
        return room

    def get(self, code: str) -> Room | None:
        return self._rooms.get(code)

    def discard(self, code: str) -> Room | None:
        return self._rooms.pop(code, None)

    def codes(self) -> list[str]:
        return list(self._rooms)

    def __contains__(self, code: object) -> bool:
        return code in self._rooms

    def __len__(self) -> int:
        return len(self._rooms)
