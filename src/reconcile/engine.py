# src/reconcile/engine.py — v1
"""Manifest/backend reconciliation and collision-safe naming.

The manifest is self-healing: every refresh drops entries whose object is
gone and appends objects the manifest does not mention yet, while the
relative order of everything still valid is kept as the user left it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Container, Iterable

from playlist_publisher.core.models import DirectorySnapshot, ManifestSnapshot
from playlist_publisher.manifest.manifest_store import ManifestStore
from playlist_publisher.storage.base_asset_directory import BaseAssetDirectory

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationResult:
    """Outcome of one reconciliation pass."""

    entries: list[str]
    pruned: list[str] = field(default_factory=list)
    appended: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.pruned or self.appended)


def reconcile_detailed(
    manifest_entries: Iterable[str],
    snapshot: DirectorySnapshot,
) -> ReconciliationResult:
    """Merge manifest order with backend contents.

    1. Keep manifest entries that resolve to a record (by name or address),
       in their original order; later references to an already-kept record
       are dropped.
    2. Append every record not referenced yet, in backend enumeration order,
       using the snapshot's reference style.
    """
    entries: list[str] = []
    pruned: list[str] = []
    appended: list[str] = []
    claimed: set[str] = set()

    for entry in manifest_entries:
        record = snapshot.resolve(entry)
        if record is None or record.name in claimed:
            pruned.append(entry)
            continue
        claimed.add(record.name)
        entries.append(entry)

    for name, record in snapshot.records.items():
        if name in claimed:
            continue
        reference = snapshot.reference_for(record)
        claimed.add(name)
        entries.append(reference)
        appended.append(reference)

    return ReconciliationResult(entries=entries, pruned=pruned, appended=appended)


def reconcile(manifest_entries: Iterable[str], snapshot: DirectorySnapshot) -> list[str]:
    """Ordered, validated entries for ``snapshot``. Idempotent."""
    return reconcile_detailed(manifest_entries, snapshot).entries


def unique_name(candidate: str, existing: Container[str]) -> str:
    """Derive a name that does not collide with ``existing``.

    ``clip.mp4`` becomes ``clip_{n}.mp4`` for the smallest ``n >= 2`` that
    is free. A leading dot is part of the base name, not an extension.
    """
    if candidate not in existing:
        return candidate
    dot = candidate.rfind(".")
    if dot > 0:  # a leading dot is part of the name: ".hidden" -> ".hidden_2"
        base, ext = candidate[:dot], candidate[dot:]
    else:
        base, ext = candidate, ""
    n = 2
    while f"{base}_{n}{ext}" in existing:
        n += 1
    return f"{base}_{n}{ext}"


class ReconciliationEngine:
    """Reads manifest and backend, and merges them into one playlist."""

    def __init__(self, manifest_store: ManifestStore, directory: BaseAssetDirectory) -> None:
        self._manifest_store = manifest_store
        self._directory = directory

    async def refresh(
        self, branch: str | None = None,
    ) -> tuple[ManifestSnapshot, DirectorySnapshot, ReconciliationResult]:
        """Fetch both sides and reconcile. Performs no writes."""
        manifest = await self._manifest_store.read(branch)
        snapshot = await self._directory.snapshot()
        result = reconcile_detailed(manifest.entries, snapshot)
        if result.pruned:
            logger.info("Pruned %d stale entr(y/ies): %s", len(result.pruned), result.pruned)
        if result.appended:
            logger.info("Discovered %d new object(s): %s", len(result.appended), result.appended)
        return manifest, snapshot, result
