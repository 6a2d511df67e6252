# src/api/session.py — v1
"""Explicit per-session state shared by the facade operations.

Nothing here is global: tests build a SessionContext directly and hand it
to PlaylistAdmin.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable

from playlist_publisher.api.models import StatusKind, StatusMessage
from playlist_publisher.config.settings import Settings
from playlist_publisher.core.models import DirectorySnapshot, ManifestSnapshot, RunStatus
from playlist_publisher.core.progress import safe_progress
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)

_LOG_LEVELS = {"muted": logging.INFO, "ok": logging.INFO, "warn": logging.WARNING}


class StatusIndicator:
    """Last-write-wins status line with optional listeners."""

    def __init__(self) -> None:
        self._current = StatusMessage()
        self._listeners: list[Callable[[StatusMessage], None]] = []

    @property
    def current(self) -> StatusMessage:
        return self._current

    def subscribe(self, listener: Callable[[StatusMessage], None]) -> None:
        self._listeners.append(safe_progress(listener))

    def set(self, text: str, kind: StatusKind = "muted") -> None:
        self._current = StatusMessage(text=text, kind=kind)
        logger.log(_LOG_LEVELS[kind], "%s", text)
        for listener in self._listeners:
            listener(self._current)


@dataclass
class SessionContext:
    """State owned by one admin session."""

    settings: Settings
    transport: GitHubTransport
    owner: str
    repo: str
    branch: str = ""
    manifest: ManifestSnapshot = field(default_factory=ManifestSnapshot)
    draft: list[str] | None = None  # local reorder not yet saved
    snapshot: DirectorySnapshot = field(default_factory=DirectorySnapshot)
    status: StatusIndicator = field(default_factory=StatusIndicator)
    run_status: RunStatus | None = None

    @property
    def connected(self) -> bool:
        return bool(self.branch)

    @property
    def entries(self) -> list[str]:
        """Entries as currently shown (draft order if one is pending)."""
        return list(self.draft if self.draft is not None else self.manifest.entries)
