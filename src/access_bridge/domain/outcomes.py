"""Outcome of one access-through-WhatsApp request.

An outcome carries the HTTP status and body returned to the gateway, the
last pipeline state reached and the side effects that were attempted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class OutcomeKind(str, Enum):
    GRANTED = "granted"
    MISSING_FIELDS = "missing_fields"
    WHITELIST_DENIED = "whitelist_denied"
    DWELLER_DENIED = "dweller_denied"
    UNSUPPORTED_TYPE = "unsupported_type"
    UNPROCESSABLE = "unprocessable"
    TECHNICAL_FAILURE = "technical_failure"


STATUS_CODES: dict[OutcomeKind, int] = {
    OutcomeKind.GRANTED: 200,
    OutcomeKind.MISSING_FIELDS: 400,
    OutcomeKind.WHITELIST_DENIED: 401,
    OutcomeKind.DWELLER_DENIED: 403,
    OutcomeKind.UNSUPPORTED_TYPE: 415,
    OutcomeKind.UNPROCESSABLE: 422,
    OutcomeKind.TECHNICAL_FAILURE: 500,
}


class AccessState(str, Enum):
    """Per-request states. Terminal states end the pipeline."""

    RECEIVED = "received"
    CLASSIFIED = "classified"
    REJECTED_FORMAT = "rejected_format"
    TOKEN_INVALID = "token_invalid"
    FIELDS_INCOMPLETE = "fields_incomplete"
    ELIGIBILITY_CHECKED = "eligibility_checked"
    DENIED = "denied"
    GRANTED = "granted"
    COMMAND_ISSUED = "command_issued"
    AUDIT_RECORDED = "audit_recorded"


@dataclass(frozen=True)
class SideEffectResult:
    """Result of a best-effort step (dispatch, notification, audit)."""

    name: str
    ok: bool
    error: str | None = None

    @classmethod
    def success(cls, name: str) -> "SideEffectResult":
        return cls(name=name, ok=True)

    @classmethod
    def failure(cls, name: str, exc: BaseException) -> "SideEffectResult":
        return cls(name=name, ok=False, error=type(exc).__name__)


@dataclass
class AccessOutcome:
    kind: OutcomeKind
    body: dict[str, Any]
    state: AccessState
    effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def status_code(self) -> int:
        return STATUS_CODES[self.kind]


def success_body() -> dict[str, Any]:
    return {"data": "OK"}


def error_body(message: str, suggestion: str) -> dict[str, Any]:
    return {"message": message, "suggestion": suggestion}


def unavailable_body(contact: str) -> dict[str, Any]:
    return error_body(
        "Service Unavailable.",
        f"Please try again in a few moments or contact: {contact}",
    )


def access_denied_body(contact: str) -> dict[str, Any]:
    return error_body(
        "Access denied.",
        f"This feature requires prior authorization to be accessed. Contact us: {contact}",
    )


def technical_failure_body() -> dict[str, Any]:
    return error_body(
        "The access creation process through WhatsApp encountered a technical issue.",
        "Please try again later or contact support if the issue persists.",
    )
