"""Generate a WhatsApp access command for a Sigma access target.

Usage:
    WHATSAPP_DATA_ENCRYPTION_KEY=... WHATSAPP_DATA_IV_STRING=... \
        python scripts/generate_access_command.py <ww|wd> <account_id> <reader_id> <command_id> <receiver_id>

Prints the `AC:<type>-<token>` text to embed in a WhatsApp link or QR code.
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    if len(sys.argv) != 6:
        print(
            "Usage: python scripts/generate_access_command.py "
            "<ww|wd> <account_id> <reader_id> <command_id> <receiver_id>"
        )
        sys.exit(2)

    raw_type, account_id, reader_id, command_id, receiver_id = sys.argv[1:]

    for name in ("WHATSAPP_DATA_ENCRYPTION_KEY", "WHATSAPP_DATA_IV_STRING"):
        if not os.environ.get(name):
            print(f"ERROR: {name} not set")
            sys.exit(1)

    from access_bridge.domain.commands import AccessType
    from access_bridge.domain.tokens import AccessToken, TokenCodec

    try:
        access_type = AccessType(raw_type)
    except ValueError:
        print(f"ERROR: unknown access type {raw_type!r} (expected ww or wd)")
        sys.exit(1)

    try:
        codec = TokenCodec(
            os.environ["WHATSAPP_DATA_ENCRYPTION_KEY"],
            os.environ["WHATSAPP_DATA_IV_STRING"],
        )
    except RuntimeError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    token = AccessToken(
        account_id=account_id,
        reader_id=reader_id,
        command_id=command_id,
        receiver_id=receiver_id,
    )
    print(f"AC:{access_type.value}-{codec.encrypt(token)}")


if __name__ == "__main__":
    main()
