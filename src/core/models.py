# src/core/models.py — v1
"""Core domain models: AssetRecord, DirectorySnapshot, CommitDescriptor, RunStatus."""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field

from playlist_publisher.core.errors import PollingUnavailable, PollTimeout

ReferenceStyle = Literal["name", "address"]


class AssetRecord(BaseModel):
    """One stored object in the storage backend."""

    name: str
    size: int = 0
    content_type: str | None = None
    identifier: str  # blob sha (folder) or asset id (release)
    address: str  # stable external address
    path: str | None = None  # repository path, folder backend only


class DirectorySnapshot(BaseModel):
    """Read-only view of what the backend holds at one point in time.

    ``records`` preserves the backend's enumeration order.
    ``reference_style`` decides how newly discovered records are written
    into the manifest (bare logical name or stable address).
    """

    records: dict[str, AssetRecord] = Field(default_factory=dict)
    reference_style: ReferenceStyle = "name"

    def names(self) -> list[str]:
        return list(self.records)

    def resolve(self, reference: str) -> AssetRecord | None:
        """Find the record a manifest entry refers to, by name or by address."""
        record = self.records.get(reference)
        if record is not None:
            return record
        for candidate in self.records.values():
            if candidate.address == reference:
                return candidate
        return None

    def reference_for(self, record: AssetRecord) -> str:
        """Manifest entry to write for a record."""
        return record.address if self.reference_style == "address" else record.name

    def __contains__(self, reference: object) -> bool:
        return isinstance(reference, str) and self.resolve(reference) is not None

    def __len__(self) -> int:
        return len(self.records)


class CommitDescriptor(BaseModel):
    """Ephemeral description of one atomic single-file commit."""

    base_revision: str
    changed_path: str
    new_object_address: str | None = None
    message: str
    commit_id: str | None = None  # set once the branch ref has moved


class ManifestSnapshot(BaseModel):
    """Manifest entries plus the revision token needed to overwrite them."""

    entries: list[str] = Field(default_factory=list)
    revision: str | None = None


class RunPhase(str, Enum):
    """CI poll session states."""

    IDLE = "idle"
    SEARCHING = "searching"
    RUNNING = "running"
    COMPLETED_SUCCESS = "completed-success"
    COMPLETED_FAILURE = "completed-failure"
    UNAVAILABLE = "unavailable"
    TIMED_OUT = "timed-out"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_TERMINAL_PHASES = frozenset(
    {
        RunPhase.COMPLETED_SUCCESS,
        RunPhase.COMPLETED_FAILURE,
        RunPhase.UNAVAILABLE,
        RunPhase.TIMED_OUT,
    }
)


class RunStatus(BaseModel):
    """Observed state of the CI run for one commit."""

    commit_id: str | None
    phase: RunPhase
    session_id: int = 0
    external_run_handle: int | None = None
    workflow_name: str | None = None
    run_url: str | None = None
    run_text: str = "-"
    notes: str = ""

    @property
    def short_commit(self) -> str:
        return self.commit_id[:7] if self.commit_id else "-"

    @property
    def is_terminal(self) -> bool:
        return self.phase.is_terminal

    @property
    def waiting_for_run(self) -> bool:
        """Searching sub-state: the run has not been registered yet."""
        return self.phase is RunPhase.SEARCHING and self.external_run_handle is None

    def raise_for_phase(self) -> None:
        """Convert advisory terminal phases into exceptions."""
        if self.phase is RunPhase.UNAVAILABLE:
            raise PollingUnavailable(self.notes)
        if self.phase is RunPhase.TIMED_OUT:
            raise PollTimeout(self.notes)


class UploadResult(BaseModel):
    """Outcome of storing one payload in the backend."""

    name: str
    record: AssetRecord
    commit_id: str | None = None  # None when the backend does not commit


class ManifestWriteResult(BaseModel):
    """A confirmed manifest write: refreshed revision plus the commit it made."""

    snapshot: ManifestSnapshot
    commit_id: str | None = None
