import logging
from contextvars import ContextVar
from typing import Optional
from uuid import uuid4

# Context Variable to store the Correlation ID
correlation_id_ctx: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

CORRELATION_ID_HEADER = "X-Correlation-ID"


def get_correlation_id() -> str:
    """Returns the current correlation ID. Defaults to 'unknown' if not set."""
    return correlation_id_ctx.get() or "unknown"


def set_correlation_id(correlation_id: str) -> None:
    """Sets the correlation ID in the current context."""
    correlation_id_ctx.set(correlation_id)


def ensure_correlation_id() -> str:
    """Returns the current correlation ID, generating one for this context when missing."""
    current = correlation_id_ctx.get()
    if current:
        return current
    generated = str(uuid4())
    correlation_id_ctx.set(generated)
    return generated


class CorrelationLogFilter(logging.Filter):
    """
    Logging filter to inject correlation ID into log records.
    """
    def filter(self, record):
        record.correlation_id = get_correlation_id()
        return True
