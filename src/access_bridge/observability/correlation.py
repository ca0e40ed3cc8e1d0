"""Correlation ID propagation for inbound webhook requests."""

import uuid
from contextvars import ContextVar, Token

# Readable from the pipeline thread because run_in_threadpool copies the context
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")

CORRELATION_ID_HEADER = "X-Correlation-ID"


def generate_correlation_id() -> str:
    return str(uuid.uuid4())


def get_correlation_id() -> str:
    """Return the correlation ID bound to the current request, or ""."""
    return correlation_id_var.get()


def set_correlation_id(cid: str) -> Token[str]:
    return correlation_id_var.set(cid)


def reset_correlation_id(token: Token[str]) -> None:
    correlation_id_var.reset(token)
