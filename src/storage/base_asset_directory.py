# src/storage/base_asset_directory.py — v1
"""Abstract asset directory interface.

One interface, two backends selected at configuration time:
a folder of files in the repository tree, or the assets attached to a
named release.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from playlist_publisher.core.models import (
    AssetRecord,
    DirectorySnapshot,
    ReferenceStyle,
    UploadResult,
)
from playlist_publisher.core.progress import ProgressCallback, StageCallback


class BaseAssetDirectory(ABC):
    """Unified interface for media storage backends."""

    #: How manifest entries refer to records of this backend.
    reference_style: ReferenceStyle = "name"

    @abstractmethod
    async def list_assets(self) -> dict[str, AssetRecord]:
        """Current contents keyed by logical name, in backend order.

        A missing folder or collection is an empty mapping, not an error.
        """

    @abstractmethod
    def stable_address(self, name: str) -> str:
        """Predictable external locator for ``name`` (no remote call)."""

    @abstractmethod
    async def upload(
        self,
        name: str,
        payload: bytes,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        on_stage: StageCallback | None = None,
    ) -> UploadResult:
        """Store ``payload`` under ``name``. The name must be free."""

    @abstractmethod
    async def delete(self, record: AssetRecord) -> str | None:
        """Remove ``record``. Returns the commit sha when the backend commits."""

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend identifier (folder, release)."""

    async def ensure_collection(self) -> None:
        """Prepare the backend before first write. No-op by default."""

    async def snapshot(self) -> DirectorySnapshot:
        """List the backend into an immutable snapshot."""
        return DirectorySnapshot(
            records=await self.list_assets(),
            reference_style=self.reference_style,
        )
