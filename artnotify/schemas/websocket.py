"""
Realtime channel message schemas.
Every frame is an envelope {"type": ..., "data": ...}. Known inbound types decode
into typed variants; anything else decodes into UnknownMessage so new server
message kinds pass through without breaking the channel.
"""
from __future__ import annotations

import json
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from artnotify.core.exceptions import MalformedFrameError
from artnotify.schemas.notification import NotificationId, NotificationRead, UnreadCount


class ChannelEvent(str, Enum):
    """Lifecycle events raised locally by the channel, never received on the wire."""

    CONNECT = "connect"
    DISCONNECT = "disconnect"
    ERROR = "error"


class InboundMessageType(str, Enum):
    NOTIFICATION = "notification"
    UNREAD_COUNT = "unread_count"
    NOTIFICATIONS_LIST = "notifications_list"


class DisconnectInfo(BaseModel):
    code: int
    reason: str = ""


# ── Inbound ───────────────────────────────────────────────────────────────────

class NotificationMessage(BaseModel):
    type: Literal["notification"] = "notification"
    data: NotificationRead


class UnreadCountMessage(BaseModel):
    type: Literal["unread_count"] = "unread_count"
    data: UnreadCount


class NotificationsListMessage(BaseModel):
    type: Literal["notifications_list"] = "notifications_list"
    data: list[NotificationRead]


class UnknownMessage(BaseModel):
    type: str
    data: Any = None


KnownMessage = Annotated[
    Union[NotificationMessage, UnreadCountMessage, NotificationsListMessage],
    Field(discriminator="type"),
]
InboundMessage = Union[NotificationMessage, UnreadCountMessage, NotificationsListMessage, UnknownMessage]

_known_message_adapter: TypeAdapter[Any] = TypeAdapter(KnownMessage)
_KNOWN_TYPES = frozenset(t.value for t in InboundMessageType)


# ── Outbound ──────────────────────────────────────────────────────────────────

class GetNotificationsMessage(BaseModel):
    type: Literal["get_notifications"] = "get_notifications"


class MarkReadMessage(BaseModel):
    type: Literal["mark_read"] = "mark_read"
    notification_id: NotificationId


class MarkAllReadMessage(BaseModel):
    type: Literal["mark_all_read"] = "mark_all_read"


OutboundMessage = Union[GetNotificationsMessage, MarkReadMessage, MarkAllReadMessage]


# ── Codec ─────────────────────────────────────────────────────────────────────

def decode_frame(raw: str | bytes) -> InboundMessage:
    """
    Decode one raw frame.

    Raises MalformedFrameError when the frame is not JSON, is not an envelope
    with a string ``type``, or carries a known type with an invalid payload.
    """
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise MalformedFrameError(f"Frame is not valid JSON: {exc}") from exc

    if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
        raise MalformedFrameError("Frame is not a message envelope with a string 'type'")

    if payload["type"] not in _KNOWN_TYPES:
        return UnknownMessage(type=payload["type"], data=payload.get("data"))

    try:
        return _known_message_adapter.validate_python(payload)
    except ValidationError as exc:
        raise MalformedFrameError(
            f"Invalid payload for message type {payload['type']!r}: {exc}"
        ) from exc


def encode_message(message: BaseModel | dict[str, Any]) -> str:
    if isinstance(message, BaseModel):
        return message.model_dump_json()
    return json.dumps(message)
