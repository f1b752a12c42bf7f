"""
Wire envelopes for the realtime channel.

Every frame in either direction is a JSON object '{"type": ..., "data": {...}}'.
Inbound payloads are validated with pydantic before the hub touches any
storage; a frame that does not validate becomes an 'InvalidEventError'.
Outbound events are built with the small factory functions below so the hub
never assembles dictionaries by hand.
"""

from collections.abc import Sequence
from enum import StrEnum
from typing import Any

import pydantic
from pydantic import BaseModel, Field

from realtime_chat.chat_database.data_models.message import ChatMessage
from realtime_chat.chat_database.data_models.user import User
from realtime_chat.errors import ChatError, InvalidEventError


class InboundType(StrEnum):
    POST = "post"
    EDIT = "edit"
    DELETE = "delete"
    TYPING = "typing"


class OutboundType(StrEnum):
    PRESENCE = "presence"
    USER_JOINED = "user_joined"
    USER_LEFT = "user_left"
    HISTORY = "history"
    MESSAGE_POSTED = "message_posted"
    MESSAGE_EDITED = "message_edited"
    MESSAGE_DELETED = "message_deleted"
    TYPING = "typing"
    ERROR = "error"


class InboundEvent(BaseModel):
    """Client -> server."""

    type: InboundType
    data: dict[str, Any] = Field(default_factory=dict)
    ref: str | None = None


class OutboundEvent(BaseModel):
    """Server -> client."""

    type: OutboundType
    data: dict[str, Any] = Field(default_factory=dict)


class PostPayload(BaseModel):
    text: str


class EditPayload(BaseModel):
    message_id: int
    new_text: str


class DeletePayload(BaseModel):
    message_id: int


class TypingPayload(BaseModel):
    is_typing: bool


PAYLOAD_MODELS: dict[InboundType, type[BaseModel]] = {
    InboundType.POST: PostPayload,
    InboundType.EDIT: EditPayload,
    InboundType.DELETE: DeletePayload,
    InboundType.TYPING: TypingPayload,
}


def parse_inbound(raw: Any) -> tuple[InboundEvent, BaseModel]:
    """Validate a decoded frame and return the envelope with its typed payload."""
    try:
        event = InboundEvent.model_validate(raw)
        payload = PAYLOAD_MODELS[event.type].model_validate(event.data)
    except pydantic.ValidationError as exc:
        raise InvalidEventError(_describe(exc)) from exc
    return event, payload


def _describe(exc: pydantic.ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first["loc"]) or "frame"
    return f"{location}: {first['msg']}"


def presence(users: Sequence[User]) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.PRESENCE, data={"users": [user.model_dump() for user in users]})


def user_joined(user: User) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.USER_JOINED, data={"user": user.model_dump()})


def user_left(user: User) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.USER_LEFT, data={"user": user.model_dump()})


def history(messages: Sequence[ChatMessage]) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.HISTORY, data={"messages": [m.model_dump() for m in messages]})


def message_posted(message: ChatMessage) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.MESSAGE_POSTED, data={"message": message.model_dump()})


def message_edited(message_id: int, new_text: str) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.MESSAGE_EDITED, data={"message_id": message_id, "new_text": new_text})


def message_deleted(message_id: int) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.MESSAGE_DELETED, data={"message_id": message_id})


def typing(user_id: int, is_typing: bool) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.TYPING, data={"user_id": user_id, "is_typing": is_typing})


def error(exc: ChatError, ref: str | None = None) -> OutboundEvent:
    return OutboundEvent(type=OutboundType.ERROR, data={"code": exc.code, "message": exc.message, "ref": ref})
