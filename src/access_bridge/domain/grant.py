"""Grant sequence for an eligible access request.

Order and failure policy:
1. Dispatch the access command to the panel. A Sigma failure is logged and
   recorded but does not change the response.
2. Reply "access granted" to the requester (best-effort).
3. Fetch account and receiver metadata concurrently; both must settle and
   both must be present, otherwise the audit step is skipped.
4. Submit the access-control event to Sigma, then append exactly one local
   audit record whose status says whether the submission succeeded.
"""

from __future__ import annotations

import contextvars
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

from access_bridge.domain.commands import AccessType
from access_bridge.domain.eligibility import AccessRequest
from access_bridge.domain.outcomes import AccessState, SideEffectResult
from access_bridge.domain.phones import jid_phone
from access_bridge.infra.repositories.audit_repository import AuditRecord, AuditStatus
from access_bridge.infra.settings import AuditEventCodes
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import hash_identifier, safe_log_context
from access_bridge.sigma.client import (
    AccessControlEvent,
    AccountMetadata,
    ReceiverMetadata,
    SigmaApiError,
)
from access_bridge.whatsapp.notifier import RequestNotifier

logger = get_logger(__name__)


class RemotePanel(Protocol):
    def issue_command(self, account_id: str, reader_id: str, command_id: str) -> None:
        ...

    def get_account_metadata(self, account_id: str) -> AccountMetadata | None:
        ...

    def get_receiver_metadata(self, account_id: str, receiver_id: str) -> ReceiverMetadata | None:
        ...

    def submit_audit_event(self, event: AccessControlEvent) -> None:
        ...


class AuditStore(Protocol):
    def append(self, record: AuditRecord) -> None:
        ...


@dataclass
class GrantReport:
    """What the grant sequence did.

    state moves to COMMAND_ISSUED only when the dispatch succeeded, and to
    AUDIT_RECORDED once the local audit row is written.
    """

    command: SideEffectResult
    notification: SideEffectResult
    state: AccessState = AccessState.GRANTED
    audit_status: AuditStatus | None = None
    audit_effects: list[SideEffectResult] = field(default_factory=list)

    @property
    def effects(self) -> list[SideEffectResult]:
        return [self.command, self.notification, *self.audit_effects]


def build_complement(display_name: str, sender_jid: str) -> str:
    return f"Nome: {display_name}, Telefone: {jid_phone(sender_jid)}"


def event_codes_by_type(codes: AuditEventCodes) -> dict[AccessType, tuple[str, str]]:
    """(code, event_id) reported to Sigma for each access type."""
    return {
        AccessType.DWELLER: (codes.dweller_code, codes.dweller_event_id),
        AccessType.WHITELIST: (codes.whitelist_code, codes.whitelist_event_id),
    }


def _submit_in_context(pool: ThreadPoolExecutor, fn: Callable[..., Any], *args: Any) -> Future:
    # Each task gets its own context copy so log lines keep the correlation ID
    return pool.submit(contextvars.copy_context().run, fn, *args)


class GrantExecutor:
    """Runs the grant sequence against the panel, notifier and audit store."""

    def __init__(
        self,
        panel: RemotePanel,
        audit_store: AuditStore,
        *,
        event_codes: AuditEventCodes,
        granted_text: str,
        codes_by_type: Mapping[AccessType, tuple[str, str]] | None = None,
    ) -> None:
        if codes_by_type is None:
            codes_by_type = event_codes_by_type(event_codes)
        codes = dict(codes_by_type)
        missing = set(AccessType) - set(codes)
        if missing:
            names = sorted(t.name for t in missing)
            raise ValueError(f"no audit event codes for access types: {names}")

        self._codes_by_type = codes
        self._panel = panel
        self._audit_store = audit_store
        self._event_codes = event_codes
        self._granted_text = granted_text

    def execute(self, request: AccessRequest, notifier: RequestNotifier) -> GrantReport:
        token = request.token
        if not token.is_complete():
            raise ValueError("grant requires a complete access token")

        log_ctx = safe_log_context(
            phone_hash=hash_identifier(request.sender_jid),
            access_type=request.access_type.value,
            account_id=token.account_id,
            command_id=token.command_id,
            reader_id=token.reader_id,
            receiver_id=token.receiver_id,
        )

        command = self._dispatch(request, log_ctx)
        notification = notifier.notify(self._granted_text, purpose="access_granted")

        logger.info(
            "access granted",
            extra={"extra_fields": safe_log_context(**log_ctx, command_ok=command.ok)},
        )

        report = GrantReport(command=command, notification=notification)
        if command.ok:
            report.state = AccessState.COMMAND_ISSUED

        metadata = self._fetch_metadata(request, log_ctx)
        if metadata is None:
            return report

        account, receiver = metadata
        code, event_id = self._codes_by_type[request.access_type]
        event = AccessControlEvent(
            account=account.account_code,
            code=code,
            company_id=account.company_id,
            complement=build_complement(request.display_name, request.sender_jid),
            event_id=event_id,
            protocol_type=self._event_codes.protocol_type,
            receiver_description=receiver.name,
        )
        self._record_audit(event, report, log_ctx)
        return report

    def _dispatch(self, request: AccessRequest, log_ctx: dict[str, str]) -> SideEffectResult:
        token = request.token
        try:
            self._panel.issue_command(token.account_id, token.reader_id, token.command_id)
        except SigmaApiError as e:
            # TODO: decide with product whether a failed dispatch should still reply "granted"
            logger.error(
                "access command dispatch failed",
                extra={
                    "extra_fields": safe_log_context(
                        **log_ctx, error_type=type(e).__name__, status_code=e.status_code
                    )
                },
            )
            return SideEffectResult.failure("command", e)
        return SideEffectResult.success("command")

    def _fetch_metadata(
        self, request: AccessRequest, log_ctx: dict[str, str]
    ) -> tuple[AccountMetadata, ReceiverMetadata] | None:
        token = request.token
        with ThreadPoolExecutor(max_workers=2) as pool:
            account_future = _submit_in_context(
                pool, self._panel.get_account_metadata, token.account_id
            )
            receiver_future = _submit_in_context(
                pool, self._panel.get_receiver_metadata, token.account_id, token.receiver_id
            )
            wait([account_future, receiver_future])

        account = self._settled(account_future, "account", log_ctx)
        receiver = self._settled(receiver_future, "receiver", log_ctx)
        if account is None or receiver is None:
            return None
        return account, receiver

    def _settled(self, future: Future, what: str, log_ctx: dict[str, str]) -> Any:
        exc = future.exception()
        if exc is not None:
            logger.warning(
                f"{what} metadata fetch failed, skipping audit",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(exc).__name__)},
            )
            return None
        value = future.result()
        if value is None:
            logger.warning(
                f"{what} metadata not found, skipping audit",
                extra={"extra_fields": log_ctx},
            )
        return value

    def _record_audit(
        self, event: AccessControlEvent, report: GrantReport, log_ctx: dict[str, str]
    ) -> None:
        status: AuditStatus
        try:
            self._panel.submit_audit_event(event)
            status = "sent"
            report.audit_effects.append(SideEffectResult.success("audit:submit"))
        except Exception as e:
            logger.error(
                "access control event submission failed",
                extra={"extra_fields": safe_log_context(**log_ctx, error_type=type(e).__name__)},
            )
            status = "failed"
            report.audit_effects.append(SideEffectResult.failure("audit:submit", e))

        record = AuditRecord(
            account=event.account,
            code=event.code,
            company_id=event.company_id,
            complement=event.complement,
            event_id=event.event_id,
            protocol_type=event.protocol_type,
            receiver_description=event.receiver_description or "",
            status=status,
        )
        try:
            self._audit_store.append(record)
        except Exception as e:
            logger.exception(
                "local audit record write failed",
                extra={"extra_fields": safe_log_context(**log_ctx, audit_status=status)},
            )
            report.audit_effects.append(SideEffectResult.failure("audit:store", e))
            return

        report.audit_status = status
        report.state = AccessState.AUDIT_RECORDED
        report.audit_effects.append(SideEffectResult.success("audit:store"))
