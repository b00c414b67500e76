from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chat.messaging.types import ServerMessage


@dataclass
class Outbox:
    """Outbound messages produced by one broker operation, in emission order.

    Components append while mutating state; the broker dispatches the
    whole batch once the mutation is complete.
    """

    entries: list[tuple[str, ServerMessage]] = field(default_factory=list)

    def emit(self, participant_id: str, message: ServerMessage) -> None:
        self.entries.append((participant_id, message))

    def for_participant(self, participant_id: str) -> list[ServerMessage]:
        return [message for target, message in self.entries if target == participant_id]

    def __len__(self) -> int:
        return len(self.entries)
