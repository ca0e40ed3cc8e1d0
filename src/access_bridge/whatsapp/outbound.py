"""Outbound WhatsApp messaging via the ChatPro API.

Security: NEVER log the recipient JID or text. Only log hashes and lengths.
"""

import json
import time
import urllib.error
import urllib.parse
import urllib.request

from access_bridge.infra.settings import AccessSettings
from access_bridge.observability.correlation import get_correlation_id
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import hash_identifier, safe_log_context

logger = get_logger(__name__)

# Timeout for HTTP requests (seconds)
HTTP_TIMEOUT = 5

MAX_RETRIES = 1
RETRY_DELAY = 0.2


def _do_request(url: str, data: bytes, headers: dict[str, str]) -> None:
    """Execute HTTP POST request. Raises on error.

    The response body is drained but not parsed; ChatPro does not always
    answer with JSON.
    """
    req = urllib.request.Request(url, data=data, headers=headers, method="POST")
    with urllib.request.urlopen(req, timeout=HTTP_TIMEOUT) as resp:
        resp.read()


class ChatProSender:
    """NotificationGateway implementation for ChatPro.

    Args:
        base_url: ChatPro API base URL (e.g., https://v5.chatpro.com.br).
        instance_id: ChatPro instance identifier.
        bearer_token: Instance token, sent as the Authorization header.
    """

    def __init__(self, *, base_url: str, instance_id: str, bearer_token: str) -> None:
        self._base_url = base_url.rstrip("/")
        self._instance_id = instance_id
        self._bearer_token = bearer_token

    @classmethod
    def from_settings(cls, settings: AccessSettings) -> "ChatProSender":
        return cls(
            base_url=settings.chat_pro_base_url,
            instance_id=settings.chat_pro_instance_id,
            bearer_token=settings.chat_pro_bearer_token,
        )

    def _url(self) -> str:
        if not self._instance_id or not self._bearer_token:
            raise RuntimeError(
                "Missing ChatPro config: CHAT_PRO_INSTANCE_ID, CHAT_PRO_BEARER_TOKEN"
            )
        query = urllib.parse.urlencode({"instance_id": self._instance_id})
        return f"{self._base_url}/{self._instance_id}/api/v1/send_message?{query}"

    def send(self, jid: str, text: str) -> None:
        """Send a text message to a WhatsApp JID.

        Raises:
            RuntimeError: If config is missing.
            urllib.error.URLError: On network/HTTP errors after retry.
        """
        url = self._url()
        data = json.dumps({"number": jid, "message": text}).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Authorization": self._bearer_token,
        }

        log_ctx = safe_log_context(
            correlationId=get_correlation_id(),
            to_hash=hash_identifier(jid),
            text_len=len(text),
        )
        logger.info("sending outbound message", extra={"extra_fields": log_ctx})

        for attempt in range(MAX_RETRIES + 1):
            try:
                _do_request(url, data, headers)
                logger.info(
                    "outbound message sent",
                    extra={"extra_fields": safe_log_context(**log_ctx, attempt=attempt)},
                )
                return
            except (urllib.error.URLError, TimeoutError) as e:
                is_5xx = isinstance(e, urllib.error.HTTPError) and 500 <= e.code < 600
                is_network = not isinstance(e, urllib.error.HTTPError)

                if attempt < MAX_RETRIES and (is_5xx or is_network):
                    logger.warning(
                        "outbound send failed, retrying",
                        extra={
                            "extra_fields": safe_log_context(
                                **log_ctx, attempt=attempt, error_type=type(e).__name__
                            )
                        },
                    )
                    time.sleep(RETRY_DELAY)
                    continue

                logger.error(
                    "outbound send failed",
                    extra={
                        "extra_fields": safe_log_context(
                            **log_ctx, attempt=attempt, error_type=type(e).__name__
                        )
                    },
                )
                raise
