from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, JsonValue, TypeAdapter

# Room codes are 6 chars; the slack lets a bad code reach the lookup and fail as room_not_found.
_MAX_ROOM_ID_LENGTH = 32


class ClientMessageType(StrEnum):
    CREATE_ROOM = "create-room"
    JOIN_ROOM = "join-room"
    FIND_RANDOM_PARTNER = "find-random-partner"
    SEND_MESSAGE = "send-message"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    LEAVE_ROOM = "leave-room"
    PING = "ping"


class ServerMessageType(StrEnum):
    ROOM_CREATED = "room-created"
    ROOM_ERROR = "room-error"
    WAITING = "waiting"
    CHAT_START = "chat-start"
    INITIATOR = "initiator"
    PARTNER_DISCONNECTED = "partner-disconnected"
    RECEIVE_MESSAGE = "receive-message"
    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"
    USER_COUNT = "user-count"
    ERROR = "error"
    PONG = "pong"


class RoomErrorCode(StrEnum):
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_FULL = "room_full"
    SELF_JOIN = "self_join"
    INVALID_INPUT = "invalid_input"
    NOT_AUTHORIZED = "not_authorized"


class ErrorCode(StrEnum):
    INVALID_MESSAGE = "invalid_message"
    RATE_LIMITED = "rate_limited"
    INTERNAL_ERROR = "internal_error"


class SignalKind(StrEnum):
    """Handshake message kinds relayed between the two room occupants."""

    OFFER = "offer"
    ANSWER = "answer"
    ICE_CANDIDATE = "ice-candidate"


# --- client -> server ---


class CreateRoomMessage(BaseModel):
    type: Literal["create-room"]


class JoinRoomMessage(BaseModel):
    type: Literal["join-room"]
    code: str = Field(min_length=1, max_length=_MAX_ROOM_ID_LENGTH)


class FindRandomPartnerMessage(BaseModel):
    type: Literal["find-random-partner"]


class SendChatMessage(BaseModel):
    """Chat text for the partner.

    `message` is deliberately loose: non-string or blank content is
    replaced with a placeholder by the relay instead of being rejected here.
    """

    type: Literal["send-message"]
    room_id: str = Field(min_length=1, max_length=_MAX_ROOM_ID_LENGTH)
    message: JsonValue = None


class OfferMessage(BaseModel):
    type: Literal["offer"]
    room_id: str = Field(min_length=1, max_length=_MAX_ROOM_ID_LENGTH)
    offer: JsonValue


class AnswerMessage(BaseModel):
    type: Literal["answer"]
    room_id: str = Field(min_length=1, max_length=_MAX_ROOM_ID_LENGTH)
    answer: JsonValue


class IceCandidateMessage(BaseModel):
    type: Literal["ice-candidate"]
    room_id: str = Field(min_length=1, max_length=_MAX_ROOM_ID_LENGTH)
    candidate: JsonValue


class LeaveRoomMessage(BaseModel):
    type: Literal["leave-room"]


class PingMessage(BaseModel):
    type: Literal["ping"]


ClientMessage = Annotated[
    CreateRoomMessage
    | JoinRoomMessage
    | FindRandomPartnerMessage
    | SendChatMessage
    | OfferMessage
    | AnswerMessage
    | IceCandidateMessage
    | LeaveRoomMessage
    | PingMessage,
    Field(discriminator="type"),
]

SignalMessage = OfferMessage | AnswerMessage | IceCandidateMessage

# Client message types whose failures are reported as room-error.
ROOM_OPERATION_TYPES = frozenset({ClientMessageType.CREATE_ROOM, ClientMessageType.JOIN_ROOM})


# --- server -> client ---


class RoomCreatedMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_CREATED] = ServerMessageType.ROOM_CREATED
    code: str


class RoomErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ROOM_ERROR] = ServerMessageType.ROOM_ERROR
    code: RoomErrorCode
    message: str


class WaitingMessage(BaseModel):
    type: Literal[ServerMessageType.WAITING] = ServerMessageType.WAITING


class ChatStartMessage(BaseModel):
    type: Literal[ServerMessageType.CHAT_START] = ServerMessageType.CHAT_START
    room_id: str


class InitiatorMessage(BaseModel):
    type: Literal[ServerMessageType.INITIATOR] = ServerMessageType.INITIATOR
    initiator: bool


class PartnerDisconnectedMessage(BaseModel):
    type: Literal[ServerMessageType.PARTNER_DISCONNECTED] = ServerMessageType.PARTNER_DISCONNECTED


class ReceiveChatMessage(BaseModel):
    type: Literal[ServerMessageType.RECEIVE_MESSAGE] = ServerMessageType.RECEIVE_MESSAGE
    message: str
    timestamp: int  # epoch milliseconds


class OfferRelayMessage(BaseModel):
    type: Literal[ServerMessageType.OFFER] = ServerMessageType.OFFER
    offer: JsonValue


class AnswerRelayMessage(BaseModel):
    type: Literal[ServerMessageType.ANSWER] = ServerMessageType.ANSWER
    answer: JsonValue


class IceCandidateRelayMessage(BaseModel):
    type: Literal[ServerMessageType.ICE_CANDIDATE] = ServerMessageType.ICE_CANDIDATE
    candidate: JsonValue


class UserCountMessage(BaseModel):
    type: Literal[ServerMessageType.USER_COUNT] = ServerMessageType.USER_COUNT
    count: int


class ErrorMessage(BaseModel):
    type: Literal[ServerMessageType.ERROR] = ServerMessageType.ERROR
    code: ErrorCode
    message: str


class PongMessage(BaseModel):
    type: Literal[ServerMessageType.PONG] = ServerMessageType.PONG


ServerMessage = (
    RoomCreatedMessage
    | RoomErrorMessage
    | WaitingMessage
    | ChatStartMessage
    | InitiatorMessage
    | PartnerDisconnectedMessage
    | ReceiveChatMessage
    | OfferRelayMessage
    | AnswerRelayMessage
    | IceCandidateRelayMessage
    | UserCountMessage
    | ErrorMessage
    | PongMessage
)


SignalRelayMessage = OfferRelayMessage | AnswerRelayMessage | IceCandidateRelayMessage


def build_signal_relay(kind: SignalKind, payload: JsonValue) -> SignalRelayMessage:
    """Wrap an opaque handshake payload in the outbound message for its kind."""
    if kind is SignalKind.OFFER:
        return OfferRelayMessage(offer=payload)
    if kind is SignalKind.ANSWER:
        return AnswerRelayMessage(answer=payload)
    return IceCandidateRelayMessage(candidate=payload)


_client_message_adapter: TypeAdapter[ClientMessage] = TypeAdapter(ClientMessage)


def parse_client_message(data: dict[str, Any]) -> ClientMessage:
    """Validate a decoded frame into a typed client message."""
    return _client_message_adapter.validate_python(data)
