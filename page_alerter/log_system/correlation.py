"""Correlation ids for grouping log lines.

A correlation id is attached to everything logged while one operation runs:
a tool call, a watcher check, or server startup.
"""

import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)
_initialization_correlation_id: Optional[str] = None


def generate_correlation_id(prefix: str = "req") -> str:
    """Generate an id of the form ``<prefix>_<8 hex chars>``."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def get_correlation_id() -> Optional[str]:
    """Return the active correlation id, falling back to the startup id."""
    return _correlation_id.get() or _initialization_correlation_id


def set_initialization_correlation_id(correlation_id: str) -> None:
    global _initialization_correlation_id
    _initialization_correlation_id = correlation_id


def clear_initialization_correlation_id() -> None:
    global _initialization_correlation_id
    _initialization_correlation_id = None


@contextmanager
def correlation_scope(correlation_id: str) -> Iterator[str]:
    """Bind a correlation id for the duration of the block."""
    token = _correlation_id.set(correlation_id)
    try:
        yield correlation_id
    finally:
        _correlation_id.reset(token)
