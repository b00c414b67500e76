from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from chat.messaging.types import (
    ROOM_OPERATION_TYPES,
    AnswerMessage,
    ClientMessageType,
    CreateRoomMessage,
    ErrorCode,
    ErrorMessage,
    FindRandomPartnerMessage,
    IceCandidateMessage,
    JoinRoomMessage,
    LeaveRoomMessage,
    OfferMessage,
    PingMessage,
    PongMessage,
    RoomErrorCode,
    RoomErrorMessage,
    SendChatMessage,
    SignalKind,
    parse_client_message,
)

if TYPE_CHECKING:
    from chat.messaging.protocol import ConnectionProtocol
    from chat.messaging.types import ClientMessage
    from chat.session.broker import SessionBroker

logger = structlog.get_logger()


class MessageRouter:
    """
    Validates decoded client frames and routes them to the broker.

    Contains no transport code, so it can be driven by MockConnection.
    Any unexpected exception while handling one message is contained here:
    the sender gets a generic error and the connection stays open.
    """

    def __init__(self, broker: SessionBroker) -> None:
        self._broker = broker

    async def handle_connect(self, connection: ConnectionProtocol) -> None:
        await self._broker.connect(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._broker.disconnect(connection)

    async def handle_message(self, connection: ConnectionProtocol, raw_message: dict[str, Any]) -> None:
        try:
            message = parse_client_message(raw_message)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            await self._reject_invalid(connection, raw_message, e)
            return

        try:
            await self._route(connection, message)
        except Exception:
            logger.exception("failed to handle message", message_type=message.type)
            await connection.send_message(
                ErrorMessage(code=ErrorCode.INTERNAL_ERROR, message="Failed to process message").model_dump(),
            )

    async def _route(self, connection: ConnectionProtocol, message: ClientMessage) -> None:
        if isinstance(message, FindRandomPartnerMessage):
            await self._broker.find_random_partner(connection)
        elif isinstance(message, CreateRoomMessage):
            await self._broker.create_room(connection)
        elif isinstance(message, JoinRoomMessage):
            await self._broker.join_room(connection, message.code)
        elif isinstance(message, LeaveRoomMessage):
            await self._broker.leave_room(connection)
        elif isinstance(message, SendChatMessage):
            await self._broker.relay_chat(connection, message.room_id, message.message)
        elif isinstance(message, OfferMessage):
            await self._broker.relay_signal(connection, message.room_id, SignalKind.OFFER, message.offer)
        elif isinstance(message, AnswerMessage):
            await self._broker.relay_signal(connection, message.room_id, SignalKind.ANSWER, message.answer)
        elif isinstance(message, IceCandidateMessage):
            await self._broker.relay_signal(connection, message.room_id, SignalKind.ICE_CANDIDATE, message.candidate)
        elif isinstance(message, PingMessage):
            await connection.send_message(PongMessage().model_dump())

    async def _reject_invalid(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
        error: Exception,
    ) -> None:
        """Room operations fail with room-error; everything else with a generic error."""
        message_type = raw_message.get("type")
        logger.warning("invalid message", message_type=message_type, error=str(error))
        if isinstance(message_type, str) and message_type in ROOM_OPERATION_TYPES:
            reason = "Invalid room code" if message_type == ClientMessageType.JOIN_ROOM else "Invalid request"
            await connection.send_message(
                RoomErrorMessage(code=RoomErrorCode.INVALID_INPUT, message=reason).model_dump(),
            )
            return
        await connection.send_message(
            ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message=str(error)).model_dump(),
        )
