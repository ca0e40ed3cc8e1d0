"""Eligibility strategies for access requests.

Each AccessType has exactly one validator:
- WhitelistValidator: the token tuple must be an active whitelisted target.
- DwellerDirectoryValidator: the sender's phone must belong to a dweller of
  the token's account in the Sigma directory.

Both share the precondition that the token carries all four identifiers.
Validators never notify the requester; the pipeline does, based on the
returned decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

from access_bridge.domain.commands import AccessType
from access_bridge.domain.phones import PhoneMatcher
from access_bridge.domain.tokens import AccessToken
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import hash_identifier, safe_log_context
from access_bridge.sigma.client import DwellerPage

logger = get_logger(__name__)

ReasonCode = Literal["granted", "missing_fields", "whitelist_denied", "dweller_denied"]


@dataclass(frozen=True)
class AccessRequest:
    """A classified request. sender_jid and display_name are PII, never logged."""

    sender_jid: str
    display_name: str
    raw_text: str
    access_type: AccessType
    token: AccessToken


@dataclass(frozen=True)
class EligibilityDecision:
    granted: bool
    reason_code: ReasonCode

    @classmethod
    def grant(cls) -> "EligibilityDecision":
        return cls(granted=True, reason_code="granted")

    @classmethod
    def deny(cls, reason_code: ReasonCode) -> "EligibilityDecision":
        return cls(granted=False, reason_code=reason_code)


MISSING_FIELDS = EligibilityDecision.deny("missing_fields")


class WhitelistStore(Protocol):
    def find_active(
        self, account_id: str, command_id: str, reader_id: str, receiver_id: str
    ) -> str | None:
        ...


class DwellerDirectory(Protocol):
    def list_dwellers(self, account_id: str, page: int, page_size: int) -> DwellerPage:
        ...


class EligibilityValidator(Protocol):
    def validate(self, request: AccessRequest) -> EligibilityDecision:
        ...


def _token_log_context(request: AccessRequest, **extra: object) -> dict[str, str]:
    token = request.token
    return safe_log_context(
        phone_hash=hash_identifier(request.sender_jid),
        access_type=request.access_type.value,
        account_id=token.account_id,
        command_id=token.command_id,
        reader_id=token.reader_id,
        receiver_id=token.receiver_id,
        **extra,
    )


def _check_fields(request: AccessRequest) -> bool:
    if request.token.is_complete():
        return True
    logger.warning(
        "invalid or unexpected token fields",
        extra={"extra_fields": _token_log_context(request)},
    )
    return False


class WhitelistValidator:
    """Grants access when the token tuple is an active whitelisted target."""

    def __init__(self, store: WhitelistStore) -> None:
        self._store = store

    def validate(self, request: AccessRequest) -> EligibilityDecision:
        if not _check_fields(request):
            return MISSING_FIELDS

        token = request.token
        target_id = self._store.find_active(
            token.account_id, token.command_id, token.reader_id, token.receiver_id
        )
        if target_id is None:
            logger.warning(
                "access denied for whitelist validation",
                extra={"extra_fields": _token_log_context(request)},
            )
            return EligibilityDecision.deny("whitelist_denied")

        return EligibilityDecision.grant()


class DwellerDirectoryValidator:
    """Grants access when the sender is a dweller of the token's account.

    Pages are fetched one at a time, starting at 0, until a phone matches or
    the directory reports its last page. max_pages (None = unbounded) stops
    a directory that never reports a last page.
    """

    def __init__(
        self,
        directory: DwellerDirectory,
        *,
        page_size: int = 10000,
        max_pages: int | None = None,
    ) -> None:
        self._directory = directory
        self._page_size = page_size
        self._max_pages = max_pages

    def validate(self, request: AccessRequest) -> EligibilityDecision:
        if not _check_fields(request):
            return MISSING_FIELDS

        matcher = PhoneMatcher(request.sender_jid)
        account_id = request.token.account_id
        page = 0
        fetched = 0

        while True:
            if self._max_pages is not None and page >= self._max_pages:
                logger.warning(
                    "dweller directory page limit reached",
                    extra={"extra_fields": _token_log_context(request, pages=page)},
                )
                break

            result = self._directory.list_dwellers(account_id, page, self._page_size)
            fetched += 1

            if any(matcher.matches(phone) for dweller in result.records for phone in dweller.phones):
                return EligibilityDecision.grant()

            if result.is_last_page:
                break

            page += 1

        logger.info(
            "access denied for dweller validation",
            extra={
                "extra_fields": _token_log_context(
                    request,
                    pages=fetched,
                    locale_recognized=matcher.locale_recognized,
                )
            },
        )
        return EligibilityDecision.deny("dweller_denied")


def build_validators(
    *,
    whitelist_store: WhitelistStore,
    directory: DwellerDirectory,
    page_size: int,
    max_pages: int | None = None,
) -> dict[AccessType, EligibilityValidator]:
    """One validator per AccessType."""
    return {
        AccessType.DWELLER: DwellerDirectoryValidator(
            directory, page_size=page_size, max_pages=max_pages
        ),
        AccessType.WHITELIST: WhitelistValidator(whitelist_store),
    }
