"""Per-request notification wrapper.

Sending a reply is best-effort: failures are logged and returned as a
SideEffectResult, never raised. A request gets at most one reply.
"""

from __future__ import annotations

from typing import Protocol

from access_bridge.domain.outcomes import SideEffectResult
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)


class NotificationGateway(Protocol):
    def send(self, jid: str, text: str) -> None:
        ...


class RequestNotifier:
    """Sends at most one reply to the requester of a single request."""

    def __init__(self, gateway: NotificationGateway, jid: str) -> None:
        self._gateway = gateway
        self._jid = jid
        self.result: SideEffectResult | None = None

    @property
    def sent(self) -> bool:
        return self.result is not None

    def notify(self, text: str, *, purpose: str) -> SideEffectResult:
        name = f"notification:{purpose}"
        if self.result is not None:
            logger.warning(
                "reply already sent for this request, skipping",
                extra={"extra_fields": safe_log_context(purpose=purpose)},
            )
            return SideEffectResult(name=name, ok=False, error="AlreadyNotified")

        try:
            self._gateway.send(self._jid, text)
            self.result = SideEffectResult.success(name)
        except Exception as e:
            logger.error(
                "reply to requester failed",
                extra={
                    "extra_fields": safe_log_context(
                        purpose=purpose,
                        phone_hash=hash_identifier(self._jid),
                        error_type=type(e).__name__,
                    )
                },
            )
            self.result = SideEffectResult.failure(name, e)
        return self.result
