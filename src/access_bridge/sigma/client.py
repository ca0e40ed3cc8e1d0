"""Segware Sigma Cloud REST client.

Two credentials are in play:
- a session token obtained from the auth endpoint with the Sigma Cloud
  username/password (commands and receivers), and
- a long-lived bearer token (accounts, dwellers and access-control events).

Errors from the HTTP layer surface as SigmaApiError. Missing metadata
(404 or empty body) is returned as None.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Literal

import requests

from access_bridge.infra.settings import AccessSettings
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import safe_log_context

logger = get_logger(__name__)

AuthMode = Literal["session", "bearer"]


class SigmaApiError(Exception):
    """Raised when a Sigma Cloud call fails (network, timeout or non-2xx)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class AccountMetadata:
    account_code: str
    company_id: str


@dataclass(frozen=True)
class ReceiverMetadata:
    name: str


@dataclass(frozen=True)
class Dweller:
    phones: tuple[str, ...]


@dataclass(frozen=True)
class DwellerPage:
    records: list[Dweller]
    is_last_page: bool


@dataclass(frozen=True)
class AccessControlEvent:
    """Event posted to /v2/events/accessControl."""

    account: str
    code: str
    company_id: str
    complement: str
    event_id: str
    protocol_type: str
    receiver_description: str | None = None
    partition: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "account": self.account,
            "code": self.code,
            "companyId": self.company_id,
            "complement": self.complement,
            "eventId": self.event_id,
            "protocolType": self.protocol_type,
        }
        if self.receiver_description is not None:
            payload["receiverDescription"] = self.receiver_description
        if self.partition is not None:
            payload["partition"] = self.partition
        return payload


def _parse_dweller(item: dict[str, Any]) -> Dweller:
    phones = []
    for phone_map in item.get("phones") or []:
        if isinstance(phone_map, dict) and phone_map.get("phone"):
            phones.append(str(phone_map["phone"]))
    return Dweller(phones=tuple(phones))


class SigmaClient:
    """RemotePanelClient and RemoteDirectoryClient over Sigma Cloud."""

    def __init__(
        self,
        *,
        api_base_url: str,
        auth_url: str,
        username: str,
        password: str,
        bearer_token: str,
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        self._api_base_url = api_base_url.rstrip("/")
        self._auth_url = auth_url
        self._username = username
        self._password = password
        self._bearer_token = bearer_token
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session_token: str | None = None
        self._token_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: AccessSettings) -> "SigmaClient":
        return cls(
            api_base_url=settings.sigma_api_base_url,
            auth_url=settings.sigma_auth_url,
            username=settings.sigma_username,
            password=settings.sigma_password,
            bearer_token=settings.sigma_bearer_token,
            timeout=settings.sigma_http_timeout,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def _fetch_session_token(self) -> str:
        if not self._username or not self._password:
            raise RuntimeError(
                "Missing Sigma config: SIGMA_CLOUD_USERNAME, SIGMA_CLOUD_PASSWORD"
            )
        try:
            response = self._session.post(
                self._auth_url,
                json={"type": "WEB"},
                auth=(self._username, self._password),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise SigmaApiError(
                f"sigma auth failed: {type(e).__name__}",
                getattr(e.response, "status_code", None),
            ) from e

        token = response.text.strip().strip('"')
        if not token:
            raise SigmaApiError("sigma auth returned an empty token")
        return token

    def _auth_header(self, mode: AuthMode, *, refresh: bool = False) -> dict[str, str]:
        if mode == "bearer":
            if not self._bearer_token:
                raise RuntimeError("Missing Sigma config: SIGMA_CLOUD_BEARER_TOKEN")
            return {"Authorization": f"Bearer {self._bearer_token}"}

        with self._token_lock:
            if refresh or self._session_token is None:
                self._session_token = self._fetch_session_token()
            return {"Authorization": f"Bearer {self._session_token}"}

    def _request(
        self,
        method: str,
        path: str,
        *,
        auth: AuthMode,
        json: Any = None,
        params: dict[str, Any] | None = None,
        allow_not_found: bool = False,
    ) -> requests.Response | None:
        url = f"{self._api_base_url}{path}"

        for attempt in range(2):
            headers = self._auth_header(auth, refresh=attempt > 0)
            try:
                response = self._session.request(
                    method,
                    url,
                    headers=headers,
                    json=json,
                    params=params,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                raise SigmaApiError(f"sigma request failed: {type(e).__name__}") from e

            # Session tokens expire; refresh once
            if response.status_code == 401 and auth == "session" and attempt == 0:
                logger.info(
                    "sigma session token rejected, refreshing",
                    extra={"extra_fields": safe_log_context(path=path)},
                )
                continue

            if response.status_code == 404 and allow_not_found:
                return None

            try:
                response.raise_for_status()
            except requests.HTTPError as e:
                raise SigmaApiError(
                    f"sigma returned HTTP {response.status_code}",
                    response.status_code,
                ) from e
            return response

        # Unreachable: the second attempt either returns or raises
        raise SigmaApiError("sigma session token rejected twice", 401)

    # ------------------------------------------------------------------
    # RemotePanelClient
    # ------------------------------------------------------------------

    def issue_command(self, account_id: str, reader_id: str, command_id: str) -> None:
        """Ask the panel to execute an access command (opens the door/gate)."""
        self._request(
            "POST",
            f"/v1/accounts/{account_id}/readers/{reader_id}/commands/{command_id}",
            auth="session",
        )

    def get_account_metadata(self, account_id: str) -> AccountMetadata | None:
        response = self._request(
            "GET", f"/v5/accounts/{account_id}", auth="bearer", allow_not_found=True
        )
        data = response.json() if response is not None and response.content else None
        if not isinstance(data, dict) or data.get("accountCode") is None or data.get("companyId") is None:
            return None
        return AccountMetadata(
            account_code=str(data["accountCode"]),
            company_id=str(data["companyId"]),
        )

    def get_receiver_metadata(self, account_id: str, receiver_id: str) -> ReceiverMetadata | None:
        response = self._request(
            "GET",
            f"/v1/accounts/{account_id}/receivers/{receiver_id}",
            auth="session",
            allow_not_found=True,
        )
        data = response.json() if response is not None and response.content else None
        if not isinstance(data, dict) or data.get("name") is None:
            return None
        return ReceiverMetadata(name=str(data["name"]))

    def submit_audit_event(self, event: AccessControlEvent) -> None:
        self._request(
            "POST",
            "/v2/events/accessControl",
            auth="bearer",
            json={"events": [event.to_payload()]},
        )

    # ------------------------------------------------------------------
    # RemoteDirectoryClient
    # ------------------------------------------------------------------

    def list_dwellers(self, account_id: str, page: int, page_size: int) -> DwellerPage:
        """Fetch one page of an account's dwellers.

        Raises:
            SigmaApiError: On HTTP failure or when the page has no lastPage flag.
        """
        response = self._request(
            "GET",
            f"/v5/accounts/{account_id}/dwellers",
            auth="bearer",
            params={"page": page, "pageSize": page_size},
        )
        data = response.json() if response is not None and response.content else {}
        if not isinstance(data, dict) or "lastPage" not in data:
            raise SigmaApiError("malformed dwellers page")
        content = data.get("content") or []
        return DwellerPage(
            records=[_parse_dweller(item) for item in content if isinstance(item, dict)],
            is_last_page=bool(data["lastPage"]),
        )
