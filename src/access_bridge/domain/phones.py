"""Phone matching between a WhatsApp sender and directory records.

Both sides are reduced to digits. When the sender's country code has a
known locale, both sides go through that locale's normalizer and must
agree on a non-null result. Otherwise digits are compared as they are.
"""

from __future__ import annotations

import re
from typing import Callable

_NON_DIGITS = re.compile(r"\D")

BRAZIL_COUNTRY_CODE = "55"
_BR_MOBILE_MARKER = "9"


def digits_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def jid_phone(jid: str) -> str:
    """Phone part of a WhatsApp JID ("5511...@s.whatsapp.net" -> "5511...")."""
    return jid.split("@", 1)[0]


def normalize_brazilian_phone(digits: str) -> str | None:
    """Normalize a Brazilian number to its 10-digit landline-style form.

    Accepts national numbers (area code + subscriber) with or without the
    55 prefix:
    - 10 digits: returned as-is.
    - 11 digits: the third digit must be the mobile marker 9, which is
      dropped ("11987654321" -> "1187654321").

    Returns:
        Normalized digits, or None if the shape is not a Brazilian number.
    """
    national = digits
    if digits.startswith(BRAZIL_COUNTRY_CODE) and len(digits) - len(BRAZIL_COUNTRY_CODE) in (10, 11):
        national = digits[len(BRAZIL_COUNTRY_CODE):]

    # Area codes run 11-99
    if not national or national[0] == "0":
        return None

    if len(national) == 10:
        return national

    if len(national) == 11:
        if national[2] != _BR_MOBILE_MARKER:
            return None
        return national[:2] + national[3:]

    return None


LOCALE_NORMALIZERS: dict[str, Callable[[str], str | None]] = {
    BRAZIL_COUNTRY_CODE: normalize_brazilian_phone,
}


class PhoneMatcher:
    """Matches directory phone numbers against one sender JID."""

    def __init__(self, sender_jid: str) -> None:
        self._sender = digits_only(jid_phone(sender_jid))
        self._country_code = self._sender[:2]
        self._normalizer = LOCALE_NORMALIZERS.get(self._country_code)
        self._sender_normalized = (
            self._normalizer(self._sender) if self._normalizer is not None else None
        )

    @property
    def locale_recognized(self) -> bool:
        return self._normalizer is not None

    def matches(self, phone: str | None) -> bool:
        candidate = digits_only(phone)
        if not candidate or not self._sender:
            return False

        if self._normalizer is not None:
            if self._sender_normalized is None:
                return False
            return self._normalizer(candidate) == self._sender_normalized

        # Unknown locale: raw digits, with or without the sender's country prefix
        return candidate == self._sender or candidate == self._sender[2:]
