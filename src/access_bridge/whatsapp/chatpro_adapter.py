"""ChatPro webhook adapter - validate and normalize inbound payloads.

Payload shape:
    {"Type": "...", "Body": {"Text": "...", "Info": {"SenderJid": "...", "PushName": "..."}}}
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .models import InboundAccessMessage


class InvalidPayloadError(Exception):
    """Raised when the ChatPro payload has an invalid shape."""

    pass


class UnsupportedMessageTypeError(Exception):
    """Raised when the payload Type is not the supported message type."""

    def __init__(self, received: Any) -> None:
        super().__init__(f"unsupported message type: {received!r}")
        self.received = received


class _SenderInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    sender_jid: str = Field(alias="SenderJid", min_length=1)
    push_name: str | None = Field(default=None, alias="PushName")


class _MessageBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: str | None = Field(default=None, alias="Text")
    info: _SenderInfo = Field(alias="Info")


def message_type_of(payload: Any) -> Any:
    """Return the payload's Type field (None if absent or not an object)."""
    if not isinstance(payload, dict):
        return None
    return payload.get("Type")


def normalize(payload: Any, *, supported_type: str) -> InboundAccessMessage:
    """Check the message type and extract sender and text.

    Raises:
        UnsupportedMessageTypeError: If Type differs from supported_type.
        InvalidPayloadError: If Body/Info are missing or malformed.
    """
    received = message_type_of(payload)
    if received != supported_type:
        raise UnsupportedMessageTypeError(received)

    try:
        body = _MessageBody.model_validate(payload.get("Body"))
    except ValidationError as e:
        raise InvalidPayloadError(f"invalid Body: {e.error_count()} error(s)") from None

    return InboundAccessMessage(
        message_type=received,
        sender_jid=body.info.sender_jid,
        push_name=body.info.push_name or "",
        text=body.text,
    )
