# src/logging/context.py — v1
"""Contextual logging support — attach operation, commit and poll session to log records."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set per user operation; asyncio tasks inherit a copy.
_operation: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "operation", default=None
)
_commit: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "commit", default=None
)
_poll_session: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "poll_session", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    operation: str | None = None
    commit: str | None = None
    poll_session: int | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        operation=_operation.get(),
        commit=_commit.get(),
        poll_session=_poll_session.get(),
    )


def set_operation_context(operation: str) -> None:
    """Set operation-level context (called once per user operation)."""
    _operation.set(operation)
    _commit.set(None)


def set_commit_context(commit: str | None) -> None:
    """Attach the commit produced (or watched) by the current operation."""
    _commit.set(commit)


def set_poll_context(session_id: int) -> None:
    """Tag records emitted by a CI poll session."""
    _poll_session.set(session_id)


def clear_context() -> None:
    """Reset all context variables."""
    _operation.set(None)
    _commit.set(None)
    _poll_session.set(None)
