from chat.session.models import Participant


class ParticipantRegistry:
    """One Participant record per live connection.

    Source of truth for who is in which room and in which state. Only the
    matchmaker and lifecycle manager mutate the records it hands out.
    """

    def __init__(self) -> None:
        self._participants: dict[str, Participant] = {}  # participant_id -> Participant

    def register(self, participant_id: str) -> Participant:
        if participant_id in self._participants:
            raise ValueError(f"participant {participant_id} is already registered")
        participant = Participant(participant_id=participant_id)
        self._participants[participant_id] = participant
        return participant

    def get(self, participant_id: str) -> Participant | None:
        return self._participants.get(participant_id)

    def remove(self, participant_id: str) -> Participant | None:
        return self._participants.pop(participant_id, None)

    def ids(self) -> list[str]:
        return list(self._participants)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._participants

    def __len__(self) -> int:
        return len(self._participants)
