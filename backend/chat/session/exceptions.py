"""Broker error taxonomy.

Every rejected room operation raises a BrokerError subclass before any
state is touched. SessionBroker converts them into room-error messages for
the originating participant; they never reach the other occupant.
"""

from chat.messaging.types import RoomErrorCode


class BrokerError(Exception):
    """Base class for recoverable, client-reported broker failures."""

    code: RoomErrorCode = RoomErrorCode.INVALID_INPUT

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class RoomNotFoundError(BrokerError):
    """No active room has the requested code."""

    code = RoomErrorCode.ROOM_NOT_FOUND


class RoomFullError(BrokerError):
    """The room already has two members."""

    code = RoomErrorCode.ROOM_FULL


class SelfJoinError(BrokerError):
    """A participant tried to join a room it already occupies."""

    code = RoomErrorCode.SELF_JOIN


class InvalidInputError(BrokerError):
    """Missing or malformed room code or message."""

    code = RoomErrorCode.INVALID_INPUT


class NotAuthorizedError(BrokerError):
    """The sender is unknown or does not occupy the referenced room."""

    code = RoomErrorCode.NOT_AUTHORIZED
