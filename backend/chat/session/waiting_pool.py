class WaitingPool:
    """FIFO queue of participants seeking a random partner.

    Backed by an insertion-ordered dict so removal of an arbitrary waiter
    (on leave or disconnect) stays O(1) while the earliest arrival is
    always matched first.
    """

    def __init__(self) -> None:
        self._queue: dict[str, None] = {}

    def enqueue(self, participant_id: str) -> None:
        if participant_id in self._queue:
            raise ValueError(f"{participant_id} is already waiting")
        self._queue[participant_id] = None

    def pop_earliest(self) -> str | None:
        """Remove and return the longest-waiting participant, or None if empty."""
        if not self._queue:
            return None
        participant_id = next(iter(self._queue))
        del self._queue[participant_id]
        return participant_id

    def discard(self, participant_id: str) -> bool:
        """Remove participant_id if queued. Return True if it was present."""
        if participant_id not in self._queue:
            return False
        del self._queue[participant_id]
        return True

    def has_other(self, participant_id: str) -> bool:
        """True if anyone other than participant_id is queued."""
        return any(waiter != participant_id for waiter in self._queue)

    def ids(self) -> list[str]:
        return list(self._queue)

    def __contains__(self, participant_id: object) -> bool:
        return participant_id in self._queue

    def __len__(self) -> int:
        return len(self._queue)
