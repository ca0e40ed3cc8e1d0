"""End-to-end tests of the access pipeline with in-memory collaborators."""

import pytest

from access_bridge.domain.access_pipeline import AccessService
from access_bridge.domain.commands import AccessType
from access_bridge.domain.eligibility import WhitelistValidator, build_validators
from access_bridge.domain.grant import GrantExecutor
from access_bridge.domain.outcomes import AccessState, OutcomeKind
from access_bridge.domain.tokens import AccessToken

from .helpers import (
    SENDER_JID,
    FakeAuditStore,
    FakeDirectory,
    FakeGateway,
    FakePanel,
    FakeWhitelistStore,
    encrypt_token,
    make_codec,
    make_payload,
    page,
    sigma_error,
)

ACTIVE_KEY = ("acc-1", "cmd-1", "reader-1", "recv-1")


class Harness:
    """AccessService wired to fakes, exposing them for assertions."""

    def __init__(
        self,
        settings,
        *,
        whitelist=None,
        pages=None,
        panel=None,
        gateway=None,
        audit_store=None,
    ):
        self.settings = settings
        self.whitelist = FakeWhitelistStore(whitelist if whitelist is not None else {ACTIVE_KEY})
        self.directory = FakeDirectory(pages or [page(last=True)])
        self.panel = panel or FakePanel()
        self.gateway = gateway or FakeGateway()
        self.audit_store = audit_store or FakeAuditStore()
        self.service = AccessService(
            settings=settings,
            codec=make_codec(),
            validators=build_validators(
                whitelist_store=self.whitelist,
                directory=self.directory,
                page_size=settings.dweller_page_size,
            ),
            executor=GrantExecutor(
                self.panel,
                self.audit_store,
                event_codes=settings.event_codes,
                granted_text=settings.texts.access_granted,
            ),
            gateway=self.gateway,
        )

    def handle(self, payload):
        return self.service.handle(payload)

    def assert_no_remote_grant_calls(self):
        assert self.panel.commands == []
        assert self.panel.events == []
        assert self.audit_store.records == []


class TestGranted:
    def test_whitelist_grant_end_to_end(self, settings):
        h = Harness(settings)

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}"))

        assert outcome.kind is OutcomeKind.GRANTED
        assert outcome.status_code == 200
        assert outcome.body == {"data": "OK"}
        assert outcome.state is AccessState.AUDIT_RECORDED
        assert h.panel.commands == [("acc-1", "reader-1", "cmd-1")]
        assert h.gateway.sent == [(SENDER_JID, settings.texts.access_granted)]
        assert [r.status for r in h.audit_store.records] == ["sent"]

    def test_dweller_grant_end_to_end(self, settings):
        h = Harness(
            settings,
            pages=[page("(21) 1111-2222", last=False), page("11 98765-4321", last=True)],
        )

        outcome = h.handle(make_payload(f"Abrir portão AC:wd-{encrypt_token()}"))

        assert outcome.kind is OutcomeKind.GRANTED
        assert len(h.directory.calls) == 2
        assert len(h.panel.commands) == 1
        assert len(h.audit_store.records) == 1

    def test_grant_with_failed_audit_submission_is_still_success(self, settings):
        h = Harness(settings, panel=FakePanel(submit_error=sigma_error()))

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}"))

        assert outcome.status_code == 200
        assert [r.status for r in h.audit_store.records] == ["failed"]

    def test_grant_with_failed_dispatch_is_still_success(self, settings):
        h = Harness(settings, panel=FakePanel(command_error=sigma_error()))

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}"))

        assert outcome.status_code == 200
        assert any(e.name == "command" and not e.ok for e in outcome.effects)
        assert len(h.gateway.sent) == 1


class TestRejections:
    def test_unsupported_type_has_no_side_effects(self, settings):
        h = Harness(settings)

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}", msg_type="sent_message"))

        assert outcome.kind is OutcomeKind.UNSUPPORTED_TYPE
        assert outcome.status_code == 415
        assert "sent_message" in outcome.body["suggestion"]
        assert h.gateway.sent == []
        assert h.whitelist.calls == []
        h.assert_no_remote_grant_calls()

    @pytest.mark.parametrize("payload", [None, [], {}, {"Type": None}])
    def test_non_object_or_untyped_payload(self, settings, payload):
        outcome = Harness(settings).handle(payload)
        assert outcome.status_code == 415

    @pytest.mark.parametrize("text", [None, "", "bom dia", "ac:ww-123"])
    def test_non_command_text_is_silently_rejected(self, settings, text):
        h = Harness(settings)

        outcome = h.handle(make_payload(text))

        assert outcome.status_code == 422
        assert outcome.state is AccessState.REJECTED_FORMAT
        assert outcome.body["message"] == "Invalid message format received."
        assert h.gateway.sent == []

    def test_missing_sender_info_is_rejected_without_reply(self, settings):
        h = Harness(settings)

        outcome = h.handle({"Type": "receveid_message", "Body": {"Text": "AC:ww-abc"}})

        assert outcome.status_code == 422
        assert h.gateway.sent == []

    @pytest.mark.parametrize("text", ["AC:ww", "AC:wd", "AC:xx-abc123"])
    def test_bad_command_notifies_once(self, settings, text):
        h = Harness(settings)

        outcome = h.handle(make_payload(text))

        assert outcome.status_code == 422
        assert outcome.state is AccessState.CLASSIFIED
        assert h.gateway.sent == [(SENDER_JID, settings.texts.service_unavailable)]
        h.assert_no_remote_grant_calls()

    @pytest.mark.parametrize("access_type", list(AccessType))
    def test_undecryptable_token_notifies_once(self, settings, access_type):
        h = Harness(settings)

        outcome = h.handle(make_payload(f"AC:{access_type.value}-deadbeef"))

        assert outcome.status_code == 422
        assert outcome.state is AccessState.TOKEN_INVALID
        assert outcome.body["message"] == "Service Unavailable."
        assert h.gateway.sent == [(SENDER_JID, settings.texts.service_unavailable)]
        assert h.whitelist.calls == []
        assert h.directory.calls == []
        h.assert_no_remote_grant_calls()

    def test_incomplete_token_is_missing_fields(self, settings):
        h = Harness(settings)
        token = encrypt_token(AccessToken(account_id="acc-1", reader_id="reader-1"))

        outcome = h.handle(make_payload(f"AC:ww-{token}"))

        assert outcome.kind is OutcomeKind.MISSING_FIELDS
        assert outcome.status_code == 400
        assert outcome.state is AccessState.FIELDS_INCOMPLETE
        assert len(h.gateway.sent) == 1
        h.assert_no_remote_grant_calls()

    def test_whitelist_denial(self, settings):
        h = Harness(settings, whitelist=set())

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}"))

        assert outcome.kind is OutcomeKind.WHITELIST_DENIED
        assert outcome.status_code == 401
        assert outcome.body["message"] == "Access denied."
        assert h.gateway.sent == [(SENDER_JID, settings.texts.access_denied)]
        h.assert_no_remote_grant_calls()

    def test_dweller_denial_after_last_page(self, settings):
        h = Harness(
            settings,
            pages=[page("(21) 1111-2222", last=False), page("(31) 3333-4444", last=True)],
        )

        outcome = h.handle(make_payload(f"AC:wd-{encrypt_token()}"))

        assert outcome.kind is OutcomeKind.DWELLER_DENIED
        assert outcome.status_code == 403
        assert len(h.directory.calls) == 2
        assert h.gateway.sent == [(SENDER_JID, settings.texts.access_denied)]
        h.assert_no_remote_grant_calls()


class TestTechnicalFailures:
    def test_directory_failure_returns_500_with_one_reply(self, settings):
        class FailingDirectory:
            def list_dwellers(self, account_id, page, page_size):
                raise sigma_error()

        h = Harness(settings)
        h.service._validators[AccessType.DWELLER] = build_validators(
            whitelist_store=h.whitelist, directory=FailingDirectory(), page_size=10
        )[AccessType.DWELLER]

        outcome = h.handle(make_payload(f"AC:wd-{encrypt_token()}"))

        assert outcome.kind is OutcomeKind.TECHNICAL_FAILURE
        assert outcome.status_code == 500
        assert h.gateway.sent == [(SENDER_JID, settings.texts.service_unavailable)]
        h.assert_no_remote_grant_calls()

    def test_failure_after_reply_does_not_reply_twice(self, settings):
        h = Harness(settings)

        def broken_execute(request, notifier):
            notifier.notify("✅", purpose="access_granted")
            raise RuntimeError("boom")

        h.service._executor.execute = broken_execute

        outcome = h.handle(make_payload(f"AC:ww-{encrypt_token()}"))

        assert outcome.status_code == 500
        assert len(h.gateway.sent) == 1
        assert outcome.state is AccessState.GRANTED


def test_validators_see_the_full_message_text(settings):
    h = Harness(settings)
    seen = []
    whitelist = h.service._validators[AccessType.WHITELIST]

    class RecordingValidator:
        def validate(self, request):
            seen.append(request.raw_text)
            return whitelist.validate(request)

    h.service._validators[AccessType.WHITELIST] = RecordingValidator()
    text = f"Portaria AC:ww-{encrypt_token()} obrigado"

    outcome = h.handle(make_payload(text))

    assert outcome.kind is OutcomeKind.GRANTED
    assert seen == [text]


def test_service_requires_validator_for_every_access_type(settings):
    with pytest.raises(ValueError, match="DWELLER"):
        AccessService(
            settings=settings,
            codec=make_codec(),
            validators={AccessType.WHITELIST: WhitelistValidator(FakeWhitelistStore())},
            executor=GrantExecutor(
                FakePanel(),
                FakeAuditStore(),
                event_codes=settings.event_codes,
                granted_text=settings.texts.access_granted,
            ),
            gateway=FakeGateway(),
        )

