"""Gate opening through the on-premise converter.

The converter exposes the panel's gate relay over HTTP on a per-server
port. After a successful opening the event is reported to Sigma so it
shows up in the account's access-control history.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

import requests

from access_bridge.infra.settings import AccessSettings
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import safe_log_context
from access_bridge.sigma.client import AccessControlEvent

logger = get_logger(__name__)

REQUIRED_FIELDS = ("account", "companyId", "complement", "partition", "server")


class OpeningValidationError(Exception):
    """Raised when an opening request misses required fields."""

    pass


class EventSubmitter(Protocol):
    def submit_audit_event(self, event: AccessControlEvent) -> None:
        ...


@dataclass(frozen=True)
class OpeningRequest:
    account: str
    company_id: str
    complement: str
    partition: str
    server: str

    @classmethod
    def from_payload(cls, payload: Any) -> "OpeningRequest":
        """Build from a JSON body.

        Raises:
            OpeningValidationError: If any required field is missing or empty.
        """
        if not isinstance(payload, dict):
            raise OpeningValidationError("body must be an object")
        missing = [name for name in REQUIRED_FIELDS if payload.get(name) in (None, "")]
        if missing:
            raise OpeningValidationError(f"missing fields: {missing}")
        return cls(
            account=str(payload["account"]),
            company_id=str(payload["companyId"]),
            complement=str(payload["complement"]),
            partition=str(payload["partition"]),
            server=str(payload["server"]),
        )


class GateOpener:
    """Opens a gate via the converter and reports the event to Sigma."""

    def __init__(
        self,
        *,
        converter_base_url: str,
        events: EventSubmitter,
        settings: AccessSettings,
        session: requests.Session | None = None,
    ) -> None:
        self._converter_base_url = converter_base_url.rstrip("/")
        self._events = events
        self._codes = settings.event_codes
        self._timeout = settings.sigma_http_timeout
        self._session = session or requests.Session()

    def open(self, request: OpeningRequest) -> Any:
        """Open the gate and report it.

        Returns:
            The converter's response body (JSON if it parses, text otherwise).

        Raises:
            RuntimeError: If CONVERTER_BASE_URL is not configured.
            requests.RequestException: If the converter call fails.
            SigmaApiError: If the event submission fails.
        """
        if not self._converter_base_url:
            raise RuntimeError("Missing converter config: CONVERTER_BASE_URL")

        url = (
            f"{self._converter_base_url}:{request.server}"
            f"/conversor_get_post/portao/open/{request.account}/{request.partition}"
        )
        response = self._session.get(url, timeout=self._timeout)
        response.raise_for_status()

        logger.info(
            "gate opened",
            extra={
                "extra_fields": safe_log_context(
                    account=request.account, partition=request.partition, server=request.server
                )
            },
        )

        self._events.submit_audit_event(
            AccessControlEvent(
                account=request.account,
                code=self._codes.opening_code,
                company_id=request.company_id,
                complement=request.complement,
                event_id=self._codes.opening_event_id,
                protocol_type=self._codes.protocol_type,
                partition=request.partition,
            )
        )

        try:
            return response.json()
        except ValueError:
            return response.text
