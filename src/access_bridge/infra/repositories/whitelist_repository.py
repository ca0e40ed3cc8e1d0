"""Whitelisted access targets - raw SQL with psycopg2 (no ORM).

A target is the exact (account, command, reader, receiver) tuple an
operator pre-authorized. Inactive targets never grant access.
"""

from psycopg2.extensions import cursor as PgCursor

from access_bridge.infra.db import fetchone, txn


def find_active_target(
    cur: PgCursor,
    *,
    account_id: str,
    command_id: str,
    reader_id: str,
    receiver_id: str,
) -> str | None:
    """Look up an active whitelisted target by its composite key.

    Returns:
        Target id, or None if absent or inactive.
    """
    row = fetchone(
        cur,
        """
        SELECT id FROM access_control_whitelisted_targets
        WHERE account_id = %s
          AND command_id = %s
          AND reader_id = %s
          AND receiver_id = %s
          AND is_access_control_whitelisted_target_active = TRUE
        """,
        (account_id, command_id, reader_id, receiver_id),
    )
    return str(row[0]) if row else None


class WhitelistStore:
    """WhitelistStore backed by PostgreSQL, one short transaction per lookup."""

    def find_active(
        self,
        account_id: str,
        command_id: str,
        reader_id: str,
        receiver_id: str,
    ) -> str | None:
        with txn() as cur:
            return find_active_target(
                cur,
                account_id=account_id,
                command_id=command_id,
                reader_id=reader_id,
                receiver_id=receiver_id,
            )
