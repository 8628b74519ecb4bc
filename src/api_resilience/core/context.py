"""Request-scoped context for api-resilience.

Tracks a correlation id across the awaits of one logical call so that
audit events and log lines from retries can be tied back together.

Example:
    from api_resilience.core.context import correlation_context

    with correlation_context("req-123"):
        await orchestrator.execute_with_retry(fetch_posts, "fetch_posts")
"""

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

from ulid import ULID

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


def new_correlation_id() -> str:
    """Generate a new sortable correlation id."""
    return str(ULID())


def get_correlation_id() -> str:
    """Return the correlation id of the current context (may be empty)."""
    return correlation_id.get()


@contextmanager
def correlation_context(value: Optional[str] = None) -> Iterator[str]:
    """Bind a correlation id for the duration of the block.

    Args:
        value: Correlation id to use; a new ULID is generated when omitted.

    Yields:
        The correlation id in effect inside the block.
    """
    cid = value or new_correlation_id()
    token = correlation_id.set(cid)
    try:
        yield cid
    finally:
        correlation_id.reset(token)


@contextmanager
def ensure_correlation_id() -> Iterator[str]:
    """Reuse the current correlation id, or bind a fresh one if unset."""
    existing = correlation_id.get()
    if existing:
        yield existing
        return
    with correlation_context() as cid:
        yield cid


__all__ = [
    "correlation_id",
    "correlation_context",
    "ensure_correlation_id",
    "get_correlation_id",
    "new_correlation_id",
]
