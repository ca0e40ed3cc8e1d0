"""Shared test doubles for Access Bridge tests.

Plain classes, not fixtures; conftest.py wires them into fixtures.
"""

from __future__ import annotations

from access_bridge.domain.tokens import AccessToken, TokenCodec
from access_bridge.sigma.client import (
    AccountMetadata,
    Dweller,
    DwellerPage,
    ReceiverMetadata,
    SigmaApiError,
)

# 32-byte key and 16-byte IV (UTF-8)
TEST_KEY = "0123456789abcdef0123456789abcdef"
TEST_IV = "fedcba9876543210"

SENDER_JID = "5511987654321@s.whatsapp.net"
SENDER_NAME = "Test Sender"

FULL_TOKEN = AccessToken(
    account_id="acc-1",
    reader_id="reader-1",
    command_id="cmd-1",
    receiver_id="recv-1",
)


def make_codec() -> TokenCodec:
    return TokenCodec(TEST_KEY, TEST_IV)


def encrypt_token(token: AccessToken = FULL_TOKEN) -> str:
    return make_codec().encrypt(token)


def make_payload(text: str | None, *, msg_type: str = "receveid_message", jid: str = SENDER_JID) -> dict:
    body: dict = {"Info": {"SenderJid": jid, "PushName": SENDER_NAME}}
    if text is not None:
        body["Text"] = text
    return {"Type": msg_type, "Body": body}


class FakeGateway:
    """NotificationGateway that records messages."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    def send(self, jid: str, text: str) -> None:
        if self.fail:
            raise RuntimeError("gateway down")
        self.sent.append((jid, text))


class FakeWhitelistStore:
    def __init__(self, active: set[tuple[str, str, str, str]] | None = None) -> None:
        self.active = active or set()
        self.calls: list[tuple[str, str, str, str]] = []

    def find_active(self, account_id, command_id, reader_id, receiver_id):
        key = (account_id, command_id, reader_id, receiver_id)
        self.calls.append(key)
        return "target-1" if key in self.active else None


class FakeDirectory:
    """Directory serving pre-built pages; records every page request."""

    def __init__(self, pages: list[DwellerPage]) -> None:
        self.pages = pages
        self.calls: list[tuple[str, int, int]] = []

    def list_dwellers(self, account_id, page, page_size):
        self.calls.append((account_id, page, page_size))
        return self.pages[page]


class EndlessDirectory:
    """Directory that never reports a last page."""

    def __init__(self) -> None:
        self.calls = 0

    def list_dwellers(self, account_id, page, page_size):
        self.calls += 1
        return DwellerPage(records=[Dweller(phones=("+1 555 0100",))], is_last_page=False)


def page(*phones: str, last: bool) -> DwellerPage:
    return DwellerPage(records=[Dweller(phones=(p,)) for p in phones], is_last_page=last)


class FakePanel:
    """RemotePanel double with switchable failures."""

    def __init__(
        self,
        *,
        account: AccountMetadata | None = AccountMetadata(account_code="1234", company_id="77"),
        receiver: ReceiverMetadata | None = ReceiverMetadata(name="Portão Principal"),
        command_error: Exception | None = None,
        account_error: Exception | None = None,
        receiver_error: Exception | None = None,
        submit_error: Exception | None = None,
    ) -> None:
        self.account = account
        self.receiver = receiver
        self.command_error = command_error
        self.account_error = account_error
        self.receiver_error = receiver_error
        self.submit_error = submit_error
        self.commands: list[tuple[str, str, str]] = []
        self.events: list = []
        self.metadata_calls: list[str] = []

    def issue_command(self, account_id, reader_id, command_id):
        self.commands.append((account_id, reader_id, command_id))
        if self.command_error:
            raise self.command_error

    def get_account_metadata(self, account_id):
        self.metadata_calls.append("account")
        if self.account_error:
            raise self.account_error
        return self.account

    def get_receiver_metadata(self, account_id, receiver_id):
        self.metadata_calls.append("receiver")
        if self.receiver_error:
            raise self.receiver_error
        return self.receiver

    def submit_audit_event(self, event):
        if self.submit_error:
            raise self.submit_error
        self.events.append(event)


class FakeAuditStore:
    def __init__(self, fail: bool = False) -> None:
        self.records: list = []
        self.fail = fail

    def append(self, record) -> None:
        if self.fail:
            raise RuntimeError("database unavailable")
        self.records.append(record)


def sigma_error(status_code: int = 503) -> SigmaApiError:
    return SigmaApiError(f"sigma returned HTTP {status_code}", status_code)
