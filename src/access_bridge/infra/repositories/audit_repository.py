"""Access-control audit ledger (append-only).

One row per granted request whose Sigma metadata could be fetched. The
status column records whether the event reached Sigma ("sent") or not
("failed").
"""

from dataclasses import dataclass
from typing import Literal

from psycopg2.extensions import cursor as PgCursor

from access_bridge.infra.db import txn

AuditStatus = Literal["sent", "failed"]


@dataclass(frozen=True)
class AuditRecord:
    """Local copy of an access-control event and its submission status."""

    account: str
    code: str
    company_id: str
    complement: str
    event_id: str
    protocol_type: str
    receiver_description: str
    status: AuditStatus


def insert_audit_record(cur: PgCursor, record: AuditRecord) -> None:
    """Insert one audit row. Caller owns the transaction."""
    cur.execute(
        """
        INSERT INTO access_control_whatsapp_events (
            account, code, company_id, complement, event_id,
            protocol_type, receiver_description, status
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
        """,
        (
            record.account,
            record.code,
            record.company_id,
            record.complement,
            record.event_id,
            record.protocol_type,
            record.receiver_description,
            record.status,
        ),
    )


class AuditStore:
    """AuditStore backed by PostgreSQL."""

    def append(self, record: AuditRecord) -> None:
        with txn() as cur:
            insert_audit_record(cur, record)
