"""Access token codec.

The token embedded in an `AC:<type>-<token>` command is a hex-encoded
AES-256-CBC cipher text of a JSON object with the account, reader, command
and receiver identifiers. Decryption fails closed: any error yields None.
"""

from __future__ import annotations

import binascii
import json
from dataclasses import dataclass

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from access_bridge.observability.logging import get_logger
from access_bridge.observability.redaction import safe_log_context

logger = get_logger(__name__)

_KEY_SIZE = 32
_IV_SIZE = 16
_BLOCK_BITS = 128


@dataclass(frozen=True)
class AccessToken:
    """Identifiers carried by an access command.

    Any field may be missing in a decrypted payload; the token is only
    usable once is_complete() is True.
    """

    account_id: str | None = None
    reader_id: str | None = None
    command_id: str | None = None
    receiver_id: str | None = None

    def is_complete(self) -> bool:
        return all((self.account_id, self.reader_id, self.command_id, self.receiver_id))

    def to_payload(self) -> dict[str, str | None]:
        return {
            "accountId": self.account_id,
            "readerId": self.reader_id,
            "commandId": self.command_id,
            "receiverId": self.receiver_id,
        }


def _as_id(value: object) -> str | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ValueError("token identifiers must be strings or integers")
    return str(value)


class TokenCodec:
    """AES-256-CBC codec for access tokens.

    Args:
        key: 32-byte secret (UTF-8 string).
        iv: 16-byte initialization vector (UTF-8 string).

    Raises:
        RuntimeError: If key or IV is missing or has the wrong length.
    """

    def __init__(self, key: str, iv: str) -> None:
        key_bytes = key.encode("utf-8")
        iv_bytes = iv.encode("utf-8")
        if len(key_bytes) != _KEY_SIZE:
            raise RuntimeError(
                "WHATSAPP_DATA_ENCRYPTION_KEY must be 32 bytes. "
                "Generate with: openssl rand -hex 16"
            )
        if len(iv_bytes) != _IV_SIZE:
            raise RuntimeError(
                "WHATSAPP_DATA_IV_STRING must be 16 bytes. "
                "Generate with: openssl rand -hex 8"
            )
        self._key = key_bytes
        self._iv = iv_bytes

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, token: AccessToken) -> str:
        """Encrypt a token into the hex form used inside access commands."""
        plaintext = json.dumps(token.to_payload(), separators=(",", ":")).encode("utf-8")
        padder = padding.PKCS7(_BLOCK_BITS).padder()
        padded = padder.update(plaintext) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return (encryptor.update(padded) + encryptor.finalize()).hex()

    def decrypt(self, cipher_text: str) -> AccessToken | None:
        """Decrypt and parse a token.

        Returns:
            AccessToken (possibly incomplete), or None if the cipher text
            cannot be decrypted or does not hold a JSON object.
        """
        try:
            raw = bytes.fromhex(cipher_text)
            decryptor = self._cipher().decryptor()
            padded = decryptor.update(raw) + decryptor.finalize()
            unpadder = padding.PKCS7(_BLOCK_BITS).unpadder()
            plaintext = unpadder.update(padded) + unpadder.finalize()
            data = json.loads(plaintext.decode("utf-8"))
            if not isinstance(data, dict):
                raise ValueError("token payload is not an object")
            return AccessToken(
                account_id=_as_id(data.get("accountId")),
                reader_id=_as_id(data.get("readerId")),
                command_id=_as_id(data.get("commandId")),
                receiver_id=_as_id(data.get("receiverId")),
            )
        except (ValueError, binascii.Error, UnicodeDecodeError) as e:
            # json.JSONDecodeError and cryptography's padding errors are ValueErrors
            logger.error(
                "access token decryption failed",
                extra={
                    "extra_fields": safe_log_context(
                        error_type=type(e).__name__,
                        token_len=len(cipher_text),
                    )
                },
            )
            return None
