"""Process-wide access settings.

Resolved once from the environment and injected into the pipeline
components. Required secrets are checked lazily by the component that
needs them, so the app can boot (and tests can import) without all of
them configured.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from access_bridge.whatsapp.templates import render

DEFAULT_SUPPORT_CONTACT = "0800-062-1800"
DEFAULT_CHAT_PRO_BASE_URL = "https://v5.chatpro.com.br"
DEFAULT_SIGMA_AUTH_URL = "https://cloud.segware.com.br/server/v2/auth"
DEFAULT_SIGMA_API_BASE_URL = "https://api.segware.com.br"

# The gateway's literal, misspelling included
SUPPORTED_MESSAGE_TYPE = "receveid_message"


@dataclass(frozen=True)
class NotificationTexts:
    """Rendered WhatsApp replies sent to the requester."""

    service_unavailable: str
    access_denied: str
    access_granted: str


@dataclass(frozen=True)
class AuditEventCodes:
    """Sigma access-control event identifiers per access type."""

    dweller_code: str = "W417"
    dweller_event_id: str = "167618000"
    whitelist_code: str = "W417"
    whitelist_event_id: str = "167618000"
    opening_code: str = "H417"
    opening_event_id: str = "167618000"
    protocol_type: str = "CONTACT_ID"


@dataclass(frozen=True)
class AccessSettings:
    """Immutable configuration for the access-through-WhatsApp service."""

    support_contact: str
    texts: NotificationTexts
    event_codes: AuditEventCodes = field(default_factory=AuditEventCodes)
    supported_message_type: str = SUPPORTED_MESSAGE_TYPE

    encryption_key: str = ""
    encryption_iv: str = ""

    chat_pro_base_url: str = DEFAULT_CHAT_PRO_BASE_URL
    chat_pro_instance_id: str = ""
    chat_pro_bearer_token: str = ""

    sigma_auth_url: str = DEFAULT_SIGMA_AUTH_URL
    sigma_api_base_url: str = DEFAULT_SIGMA_API_BASE_URL
    sigma_username: str = ""
    sigma_password: str = ""
    sigma_bearer_token: str = ""
    sigma_http_timeout: float = 30.0

    dweller_page_size: int = 10000
    dweller_max_pages: int | None = None

    converter_base_url: str = ""


def build_texts(support_contact: str) -> NotificationTexts:
    """Render the reply templates for a given support contact."""
    return NotificationTexts(
        service_unavailable=render("service_unavailable", {"contact": support_contact}),
        access_denied=render("access_denied", {"contact": support_contact}),
        access_granted=render("access_granted", {}),
    )


def _getint(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def _optional_positive_int(name: str) -> int | None:
    value = _getint(name, 0)
    return value if value > 0 else None


def load_settings() -> AccessSettings:
    """Read AccessSettings from environment variables."""
    support_contact = os.environ.get("SUPPORT_CONTACT", DEFAULT_SUPPORT_CONTACT)

    page_size = _getint("DWELLER_PAGE_SIZE", 10000)
    if page_size <= 0:
        raise RuntimeError("DWELLER_PAGE_SIZE must be a positive integer")

    timeout_raw = os.environ.get("SIGMA_HTTP_TIMEOUT", "30")
    try:
        timeout = float(timeout_raw)
    except ValueError:
        raise RuntimeError(f"SIGMA_HTTP_TIMEOUT must be a number, got {timeout_raw!r}") from None

    return AccessSettings(
        support_contact=support_contact,
        texts=build_texts(support_contact),
        encryption_key=os.environ.get("WHATSAPP_DATA_ENCRYPTION_KEY", ""),
        encryption_iv=os.environ.get("WHATSAPP_DATA_IV_STRING", ""),
        chat_pro_base_url=os.environ.get("CHAT_PRO_BASE_URL", DEFAULT_CHAT_PRO_BASE_URL).rstrip("/"),
        chat_pro_instance_id=os.environ.get("CHAT_PRO_INSTANCE_ID", ""),
        chat_pro_bearer_token=os.environ.get("CHAT_PRO_BEARER_TOKEN", ""),
        sigma_auth_url=os.environ.get("SIGMA_AUTH_URL", DEFAULT_SIGMA_AUTH_URL),
        sigma_api_base_url=os.environ.get("SIGMA_API_BASE_URL", DEFAULT_SIGMA_API_BASE_URL).rstrip("/"),
        sigma_username=os.environ.get("SIGMA_CLOUD_USERNAME", ""),
        sigma_password=os.environ.get("SIGMA_CLOUD_PASSWORD", ""),
        sigma_bearer_token=os.environ.get("SIGMA_CLOUD_BEARER_TOKEN", ""),
        sigma_http_timeout=timeout,
        dweller_page_size=page_size,
        dweller_max_pages=_optional_positive_int("DWELLER_MAX_PAGES"),
        converter_base_url=os.environ.get("CONVERTER_BASE_URL", "").rstrip("/"),
    )


@lru_cache(maxsize=1)
def get_settings() -> AccessSettings:
    """Settings resolved once per process."""
    return load_settings()
