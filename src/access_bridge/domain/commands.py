"""Access command parsing.

Inbound text may carry an access command anywhere in it:

    AC:<TYPE>(-<ARG>)?

TYPE selects the eligibility strategy, ARG is the encrypted access token.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

COMMAND_PATTERN = re.compile(r"AC:[a-zA-Z0-9]+(-[a-zA-Z0-9]+)?")

EXPECTED_FORMAT = "AC:ACCESS_TYPE(-ARGUMENT_A?)"


class AccessType(str, Enum):
    """Closed set of access types a command may request."""

    DWELLER = "wd"
    WHITELIST = "ww"


class InvalidCommandError(Exception):
    """Raised when a command was found but cannot be served."""

    def __init__(self, reason: str, raw_type: str) -> None:
        super().__init__(reason)
        self.reason = reason
        self.raw_type = raw_type


@dataclass(frozen=True)
class AccessCommand:
    """A recognized access command."""

    access_type: AccessType
    token: str


def find_command(text: str | None) -> str | None:
    """Return the first `AC:...` command in text, or None."""
    if not text:
        return None
    match = COMMAND_PATTERN.search(text)
    return match.group(0) if match else None


def parse_command(command: str) -> AccessCommand:
    """Split a matched command into access type and token argument.

    Args:
        command: A string matched by COMMAND_PATTERN.

    Raises:
        InvalidCommandError: Unknown access type or missing token argument.
    """
    body = command.split(":", 1)[1]
    raw_type, _, argument = body.partition("-")

    try:
        access_type = AccessType(raw_type)
    except ValueError:
        raise InvalidCommandError("unknown access type", raw_type) from None

    if not argument:
        raise InvalidCommandError("missing token argument", raw_type)

    return AccessCommand(access_type=access_type, token=argument)
