# src/api/facade.py — v1
"""Public API facade: one method per user-initiated operation.

Usage:
    async with PlaylistAdmin.from_settings(settings) as admin:
        await admin.connect()
        await admin.refresh()
        result = await admin.upload([MediaFile.from_path(path)])

Each operation:
  1. applies its change upstream (CommitPipeline or backend call),
  2. writes the manifest at most once,
  3. mutates in-memory state only after the write is confirmed,
  4. optionally watches CI for the resulting commit.
Failures update the status indicator and propagate.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable

from playlist_publisher.api.models import MediaFile, OperationResult
from playlist_publisher.api.session import SessionContext
from playlist_publisher.ci.status_poller import CIStatusPoller, StatusListener
from playlist_publisher.config.settings import Settings
from playlist_publisher.core.errors import (
    AuthError,
    InvalidManifest,
    NotFoundError,
    PublisherError,
)
from playlist_publisher.core.models import AssetRecord, DirectorySnapshot, RunStatus
from playlist_publisher.core.progress import ProgressCallback, StageCallback
from playlist_publisher.encoding.content_encoder import sanitize_file_name
from playlist_publisher.logging.context import set_commit_context, set_operation_context
from playlist_publisher.manifest.manifest_store import DEFAULT_MESSAGE, ManifestStore
from playlist_publisher.reconcile.engine import ReconciliationEngine, unique_name
from playlist_publisher.storage.base_asset_directory import BaseAssetDirectory
from playlist_publisher.storage.directory_factory import create_asset_directory
from playlist_publisher.transport.github_transport import GitHubTransport
from playlist_publisher.transport.retry import RetryConfig

logger = logging.getLogger(__name__)


class PlaylistAdmin:
    """Admin session over one repository's playlist."""

    def __init__(
        self,
        context: SessionContext,
        directory: BaseAssetDirectory | None = None,
        poller: CIStatusPoller | None = None,
        owns_transport: bool = False,
    ) -> None:
        self.context = context
        self._directory = directory
        self._poller = poller
        self._owns_transport = owns_transport
        self._manifest_store = ManifestStore(
            context.transport, context.owner, context.repo,
            path=context.settings.manifest_path,
        )
        self._engine: ReconciliationEngine | None = None

    @classmethod
    def from_settings(cls, settings: Settings, **transport_kwargs: object) -> PlaylistAdmin:
        """Build a session (and its transport) from configuration."""
        if not settings.github_owner:
            raise ValueError("GITHUB_OWNER and GITHUB_REPO must be set")
        transport = GitHubTransport(
            settings.github_token,
            api_url=settings.github_api_url,
            timeout_s=settings.http_timeout_s,
            retry=RetryConfig(
                max_retries=settings.http_max_retries,
                base_delay_s=settings.http_retry_base_delay_s,
            ),
            **transport_kwargs,  # type: ignore[arg-type]
        )
        context = SessionContext(
            settings=settings,
            transport=transport,
            owner=settings.github_owner,
            repo=settings.github_repo,
        )
        return cls(context, owns_transport=True)

    async def __aenter__(self) -> PlaylistAdmin:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_transport:
            await self.context.transport.aclose()

    # --- Components ---

    @property
    def directory(self) -> BaseAssetDirectory:
        if self._directory is None:
            raise PublisherError("Not connected. Call connect() first.")
        return self._directory

    @property
    def poller(self) -> CIStatusPoller:
        if self._poller is None:
            settings = self.context.settings
            self._poller = CIStatusPoller(
                self.context.transport,
                self.context.owner,
                self.context.repo,
                interval_s=settings.poll_interval_s,
                timeout_s=settings.poll_timeout_s,
                runs_per_page=settings.poll_runs_per_page,
            )
        return self._poller

    @property
    def engine(self) -> ReconciliationEngine:
        if self._engine is None:
            self._engine = ReconciliationEngine(self._manifest_store, self.directory)
        return self._engine

    @property
    def entries(self) -> list[str]:
        return self.context.entries

    # --- Operations ---

    async def connect(self) -> str:
        """Validate the token and resolve the target branch.

        Raises:
            AuthError: Token missing, invalid, or without access to the repository.
        """
        ctx = self.context
        set_operation_context("connect")
        try:
            meta = await ctx.transport.get(f"/repos/{ctx.owner}/{ctx.repo}")
        except (AuthError, NotFoundError) as exc:
            ctx.status.set(f"Auth error: {exc}", "warn")
            if isinstance(exc, AuthError):
                raise
            raise AuthError(str(exc), status=exc.status, details=exc.details) from exc

        ctx.branch = ctx.settings.github_branch or (meta or {}).get("default_branch") or "main"
        if self._directory is None:
            self._directory = create_asset_directory(
                ctx.settings, ctx.transport, ctx.branch, owner=ctx.owner, repo=ctx.repo,
            )
        ctx.status.set(f"Connected to {ctx.owner}/{ctx.repo}@{ctx.branch}", "ok")
        return ctx.branch

    async def refresh(self) -> list[str]:
        """Re-read manifest and backend; reconcile without writing."""
        async with self._operation("refresh", "Refresh failed"):
            entries = await self._load()
            self.context.status.set("Loaded videos and playlist.", "ok")
            return entries

    async def upload(
        self,
        files: Iterable[MediaFile],
        watch: bool = True,
        on_progress: ProgressCallback | None = None,
        on_stage: StageCallback | None = None,
        on_status: StatusListener | None = None,
    ) -> OperationResult:
        """Store each file under a collision-free name, then save the manifest once."""
        files = list(files)
        if not files:
            raise InvalidManifest("Choose one or more video files first.")

        ctx = self.context
        async with self._operation("upload", "Upload failed"):
            await self._ensure_loaded()
            directory = self.directory
            await directory.ensure_collection()
            ctx.snapshot = await directory.snapshot()
            records: dict[str, AssetRecord] = dict(ctx.snapshot.records)

            entries = ctx.entries
            uploaded: list[str] = []
            last_commit: str | None = None
            for i, media in enumerate(files, start=1):
                name = unique_name(sanitize_file_name(media.name), records)
                ctx.status.set(f"Uploading {i}/{len(files)}: {name}")
                result = await directory.upload(
                    name, media.payload, media.content_type,
                    on_progress=on_progress, on_stage=on_stage,
                )
                records[name] = result.record
                ctx.snapshot = ctx.snapshot.model_copy(update={"records": dict(records)})
                last_commit = result.commit_id or last_commit
                uploaded.append(name)

                reference = ctx.snapshot.reference_for(result.record)
                if reference not in entries:
                    entries.append(reference)

            ctx.status.set(f"Updating {self._manifest_store.path}...")
            commit_id = await self._save(entries) or last_commit
            ctx.status.set(f"Uploaded {len(uploaded)} file(s).", "ok")

        run_status = await self._maybe_watch(commit_id, watch, on_status)
        return OperationResult(
            entries=ctx.entries, commit_id=commit_id, uploaded=uploaded, run_status=run_status,
        )

    async def delete(
        self,
        name: str,
        watch: bool = True,
        on_status: StatusListener | None = None,
    ) -> OperationResult:
        """Remove one object from the backend and from the manifest."""
        ctx = self.context
        async with self._operation("delete", "Delete failed"):
            await self._ensure_loaded()
            ctx.status.set(f"Deleting {name}...")
            record = ctx.snapshot.resolve(name)
            if record is None:
                ctx.snapshot = await self.directory.snapshot()
                record = ctx.snapshot.resolve(name)
            if record is None:
                raise NotFoundError(f"Cannot find {name} to delete (refresh and try again)")

            entries = [e for e in ctx.entries if not _refers_to(ctx.snapshot, e, record)]
            delete_commit = await self.directory.delete(record)
            records = {k: v for k, v in ctx.snapshot.records.items() if k != record.name}
            ctx.snapshot = ctx.snapshot.model_copy(update={"records": records})

            ctx.status.set(f"Updating {self._manifest_store.path}...")
            commit_id = await self._save(entries) or delete_commit
            ctx.status.set(f"Deleted {record.name}.", "ok")

        run_status = await self._maybe_watch(commit_id, watch, on_status)
        return OperationResult(entries=ctx.entries, commit_id=commit_id, run_status=run_status)

    def move(self, from_index: int, to_index: int) -> list[str]:
        """Reorder locally (drag-and-drop equivalent). Persist with save_order()."""
        entries = self.context.entries
        if not (0 <= from_index < len(entries) and 0 <= to_index < len(entries)):
            raise IndexError(f"Cannot move {from_index} -> {to_index} in {len(entries)} entries")
        if from_index != to_index:
            entries.insert(to_index, entries.pop(from_index))
            self.context.draft = entries
        return list(entries)

    async def reorder(
        self,
        order: list[str],
        watch: bool = True,
        on_status: StatusListener | None = None,
    ) -> OperationResult:
        """Replace the order with ``order`` (a permutation of the current entries) and save."""
        current = self.context.entries
        if sorted(order) != sorted(current) or len(set(order)) != len(order):
            raise InvalidManifest("New order must contain exactly the current entries")
        self.context.draft = list(order)
        return await self.save_order(watch=watch, on_status=on_status)

    async def save_order(
        self,
        watch: bool = True,
        on_status: StatusListener | None = None,
    ) -> OperationResult:
        """Persist the current (possibly reordered) entries."""
        ctx = self.context
        async with self._operation("save", "Save failed"):
            ctx.status.set(f"Saving {self._manifest_store.path}...")
            commit_id = await self._save(ctx.entries)
            ctx.status.set(f"Saved {self._manifest_store.path} order.", "ok")

        run_status = await self._maybe_watch(commit_id, watch, on_status)
        return OperationResult(entries=ctx.entries, commit_id=commit_id, run_status=run_status)

    async def watch(
        self, commit_id: str | None, on_status: StatusListener | None = None,
    ) -> RunStatus:
        """Poll CI for ``commit_id``; supersedes any earlier watch."""
        set_commit_context(commit_id)

        def _record(status: RunStatus) -> None:
            self.context.run_status = status
            if on_status is not None:
                on_status(status)

        return await self.poller.poll(commit_id, on_status=_record)

    # --- Internals ---

    async def _load(self) -> list[str]:
        ctx = self.context
        manifest, snapshot, result = await self.engine.refresh(ctx.branch)
        ctx.manifest = manifest.model_copy(update={"entries": result.entries})
        ctx.snapshot = snapshot
        ctx.draft = None
        return list(result.entries)

    async def _ensure_loaded(self) -> None:
        """Load manifest and backend once if this session never refreshed."""
        ctx = self.context
        if not ctx.manifest.revision and not ctx.snapshot.records:
            await self._load()

    async def _save(self, entries: list[str]) -> str | None:
        """Single manifest write; commits in-memory state only on success."""
        ctx = self.context
        result = await self._manifest_store.write(
            entries, ctx.manifest.revision, DEFAULT_MESSAGE, branch=ctx.branch or None,
        )
        ctx.manifest = result.snapshot
        ctx.draft = None
        set_commit_context(result.commit_id)
        return result.commit_id

    async def _maybe_watch(
        self, commit_id: str | None, watch: bool, on_status: StatusListener | None,
    ) -> RunStatus | None:
        if not watch:
            return None
        return await self.watch(commit_id, on_status=on_status)

    @asynccontextmanager
    async def _operation(self, name: str, failure: str) -> AsyncIterator[None]:
        set_operation_context(name)
        if not self.context.connected:
            await self.connect()
            set_operation_context(name)
        try:
            yield
        except PublisherError as exc:
            logger.error("%s: %s", failure, exc)
            self.context.status.set(f"{failure}: {exc}", "warn")
            raise


def _refers_to(snapshot: DirectorySnapshot, entry: str, record: AssetRecord) -> bool:
    resolved = snapshot.resolve(entry)
    if resolved is not None:
        return resolved.name == record.name
    return entry in (record.name, record.address)
