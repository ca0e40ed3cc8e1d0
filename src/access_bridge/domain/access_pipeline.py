"""Access-through-WhatsApp pipeline.

    RECEIVED -> CLASSIFIED -> REJECTED_FORMAT | TOKEN_INVALID | FIELDS_INCOMPLETE
                           -> ELIGIBILITY_CHECKED -> DENIED
                                                  -> GRANTED -> COMMAND_ISSUED -> AUDIT_RECORDED

Every request gets at most one WhatsApp reply and at most one audit record.
Messages that are not access commands are rejected silently (no reply).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from access_bridge.domain.commands import (
    EXPECTED_FORMAT,
    AccessType,
    InvalidCommandError,
    find_command,
    parse_command,
)
from access_bridge.domain.eligibility import (
    AccessRequest,
    EligibilityValidator,
    build_validators,
)
from access_bridge.domain.grant import GrantExecutor
from access_bridge.domain.outcomes import (
    AccessOutcome,
    AccessState,
    OutcomeKind,
    SideEffectResult,
    access_denied_body,
    error_body,
    success_body,
    technical_failure_body,
    unavailable_body,
)
from access_bridge.domain.tokens import TokenCodec
from access_bridge.infra.repositories.audit_repository import AuditStore
from access_bridge.infra.repositories.whitelist_repository import WhitelistStore
from access_bridge.infra.settings import AccessSettings
from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import hash_identifier, safe_log_context
from access_bridge.sigma.client import SigmaClient
from access_bridge.whatsapp.chatpro_adapter import (
    InvalidPayloadError,
    UnsupportedMessageTypeError,
    normalize,
)
from access_bridge.whatsapp.notifier import NotificationGateway, RequestNotifier
from access_bridge.whatsapp.outbound import ChatProSender

logger = get_logger(__name__)

_DENIAL_KINDS = {
    "whitelist_denied": OutcomeKind.WHITELIST_DENIED,
    "dweller_denied": OutcomeKind.DWELLER_DENIED,
}


@dataclass
class _Progress:
    """Last state a request reached, reported on a technical failure."""

    state: AccessState = AccessState.RECEIVED


def _effects(notifier: RequestNotifier | None) -> list[SideEffectResult]:
    if notifier is None or notifier.result is None:
        return []
    return [notifier.result]


class AccessService:
    """Decides and executes access commands received over WhatsApp.

    Args:
        settings: Process-wide access settings.
        codec: Token codec keyed with the process secret.
        validators: Exactly one eligibility validator per AccessType.
        executor: Grant sequence runner.
        gateway: Outbound WhatsApp gateway.

    Raises:
        ValueError: If an AccessType has no validator.
    """

    def __init__(
        self,
        *,
        settings: AccessSettings,
        codec: TokenCodec,
        validators: Mapping[AccessType, EligibilityValidator],
        executor: GrantExecutor,
        gateway: NotificationGateway,
    ) -> None:
        missing = set(AccessType) - set(validators)
        if missing:
            names = sorted(t.name for t in missing)
            raise ValueError(f"no eligibility validator for access types: {names}")

        self._settings = settings
        self._codec = codec
        self._validators = dict(validators)
        self._executor = executor
        self._gateway = gateway

    def _unavailable(
        self,
        kind: OutcomeKind,
        state: AccessState,
        notifier: RequestNotifier,
    ) -> AccessOutcome:
        notifier.notify(self._settings.texts.service_unavailable, purpose="service_unavailable")
        return AccessOutcome(
            kind=kind,
            body=unavailable_body(self._settings.support_contact),
            state=state,
            effects=_effects(notifier),
        )

    def handle(self, payload: Any) -> AccessOutcome:
        """Process one inbound webhook payload."""
        try:
            message = normalize(payload, supported_type=self._settings.supported_message_type)
        except UnsupportedMessageTypeError as e:
            logger.debug(
                "invalid or unexpected message type",
                extra={"extra_fields": safe_log_context(message_type=e.received)},
            )
            return AccessOutcome(
                kind=OutcomeKind.UNSUPPORTED_TYPE,
                body=error_body(
                    "Unsupported message type received.",
                    f'Expected message type: "{self._settings.supported_message_type}", '
                    f'received: "{e.received}"',
                ),
                state=AccessState.RECEIVED,
            )
        except InvalidPayloadError:
            logger.debug("invalid message body shape")
            return self._format_rejection()

        command = find_command(message.text)
        if command is None:
            logger.debug("message is not an access command")
            return self._format_rejection()

        notifier = RequestNotifier(self._gateway, message.sender_jid)
        progress = _Progress(state=AccessState.CLASSIFIED)
        try:
            return self._process(
                message.sender_jid,
                message.push_name,
                message.text,
                command,
                notifier,
                progress,
            )
        except Exception:
            logger.exception(
                "access through whatsapp failed",
                extra={
                    "extra_fields": safe_log_context(
                        phone_hash=hash_identifier(message.sender_jid)
                    )
                },
            )
            if not notifier.sent:
                notifier.notify(
                    self._settings.texts.service_unavailable, purpose="technical_failure"
                )
            return AccessOutcome(
                kind=OutcomeKind.TECHNICAL_FAILURE,
                body=technical_failure_body(),
                state=progress.state,
                effects=_effects(notifier),
            )

    def _format_rejection(self) -> AccessOutcome:
        return AccessOutcome(
            kind=OutcomeKind.UNPROCESSABLE,
            body=error_body(
                "Invalid message format received.",
                f'Expected message format: "{EXPECTED_FORMAT}"',
            ),
            state=AccessState.REJECTED_FORMAT,
        )

    def _process(
        self,
        sender_jid: str,
        display_name: str,
        raw_text: str,
        command: str,
        notifier: RequestNotifier,
        progress: _Progress,
    ) -> AccessOutcome:
        try:
            parsed = parse_command(command)
        except InvalidCommandError as e:
            logger.warning(
                "invalid or unexpected access command",
                extra={"extra_fields": safe_log_context(reason=e.reason, access_type=e.raw_type)},
            )
            return self._unavailable(
                OutcomeKind.UNPROCESSABLE, AccessState.REJECTED_FORMAT, notifier
            )

        token = self._codec.decrypt(parsed.token)
        if token is None:
            return self._unavailable(OutcomeKind.UNPROCESSABLE, AccessState.TOKEN_INVALID, notifier)

        request = AccessRequest(
            sender_jid=sender_jid,
            display_name=display_name,
            raw_text=raw_text,
            access_type=parsed.access_type,
            token=token,
        )

        decision = self._validators[request.access_type].validate(request)
        progress.state = AccessState.ELIGIBILITY_CHECKED

        if decision.reason_code == "missing_fields":
            return self._unavailable(
                OutcomeKind.MISSING_FIELDS, AccessState.FIELDS_INCOMPLETE, notifier
            )

        if not decision.granted:
            notifier.notify(self._settings.texts.access_denied, purpose="access_denied")
            return AccessOutcome(
                kind=_DENIAL_KINDS[decision.reason_code],
                body=access_denied_body(self._settings.support_contact),
                state=AccessState.DENIED,
                effects=_effects(notifier),
            )

        progress.state = AccessState.GRANTED
        report = self._executor.execute(request, notifier)
        return AccessOutcome(
            kind=OutcomeKind.GRANTED,
            body=success_body(),
            state=report.state,
            effects=report.effects,
        )


def build_access_service(settings: AccessSettings) -> AccessService:
    """Wire the production collaborators from settings.

    Raises:
        RuntimeError: If the token key or IV is not configured.
    """
    sigma = SigmaClient.from_settings(settings)
    return AccessService(
        settings=settings,
        codec=TokenCodec(settings.encryption_key, settings.encryption_iv),
        validators=build_validators(
            whitelist_store=WhitelistStore(),
            directory=sigma,
            page_size=settings.dweller_page_size,
            max_pages=settings.dweller_max_pages,
        ),
        executor=GrantExecutor(
            sigma,
            AuditStore(),
            event_codes=settings.event_codes,
            granted_text=settings.texts.access_granted,
        ),
        gateway=ChatProSender.from_settings(settings),
    )
