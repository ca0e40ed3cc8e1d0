"""WhatsApp inbound message models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class InboundAccessMessage:
    """ChatPro webhook message, normalized.

    PII: `sender_jid`, `push_name` and `text` live only in memory while the
    request is processed. NEVER log them.
    """

    message_type: str
    sender_jid: str
    push_name: str
    text: str | None
