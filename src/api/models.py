# src/api/models.py — v1
"""API-level models: MediaFile, StatusMessage, OperationResult."""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Literal

from pydantic import BaseModel

from playlist_publisher.core.models import RunStatus

StatusKind = Literal["muted", "ok", "warn"]


class MediaFile(BaseModel):
    """One file selected for upload."""

    name: str
    payload: bytes
    content_type: str | None = None

    @classmethod
    def from_path(cls, path: Path) -> MediaFile:
        return cls(
            name=path.name,
            payload=path.read_bytes(),
            content_type=mimetypes.guess_type(path.name)[0],
        )


class StatusMessage(BaseModel):
    """The single user-visible status line."""

    text: str = ""
    kind: StatusKind = "muted"


class OperationResult(BaseModel):
    """What a user operation changed upstream."""

    entries: list[str]
    commit_id: str | None = None
    uploaded: list[str] = []
    run_status: RunStatus | None = None
