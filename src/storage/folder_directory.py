# src/storage/folder_directory.py — v1
"""Folder backend: media files live under one directory of the repository tree."""

from __future__ import annotations

import logging
import mimetypes
from urllib.parse import quote

from playlist_publisher.core.errors import (
    AuthError,
    ConcurrentModification,
    NotFoundError,
    TransportError,
)
from playlist_publisher.core.models import AssetRecord, UploadResult
from playlist_publisher.core.progress import ProgressCallback, StageCallback
from playlist_publisher.publish.commit_pipeline import CommitPipeline
from playlist_publisher.storage.base_asset_directory import BaseAssetDirectory
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)


class FolderAssetDirectory(BaseAssetDirectory):
    """Files in ``{folder}/`` on one branch, written through CommitPipeline."""

    reference_style = "name"

    def __init__(
        self,
        transport: GitHubTransport,
        pipeline: CommitPipeline,
        owner: str,
        repo: str,
        branch: str,
        folder: str = "videos",
    ) -> None:
        self._transport = transport
        self._pipeline = pipeline
        self._branch = branch
        self._folder = folder.strip("/")
        self._contents = f"/repos/{owner}/{repo}/contents"

    @property
    def backend_name(self) -> str:
        return "folder"

    def stable_address(self, name: str) -> str:
        return f"{self._folder}/{name}"

    async def list_assets(self) -> dict[str, AssetRecord]:
        try:
            items = await self._transport.get(
                f"{self._contents}/{quote(self._folder, safe='/')}",
                params={"ref": self._branch},
            )
        except NotFoundError:
            logger.info("Folder %s/ does not exist yet", self._folder)
            return {}

        if not isinstance(items, list):
            return {}

        records: dict[str, AssetRecord] = {}
        for item in items:
            if item.get("type") != "file":
                continue
            name = item["name"]
            records[name] = AssetRecord(
                name=name,
                size=item.get("size", 0),
                content_type=mimetypes.guess_type(name)[0],
                identifier=item["sha"],
                address=item.get("path") or self.stable_address(name),
                path=item.get("path") or self.stable_address(name),
            )
        logger.debug("Listed %d file(s) in %s/", len(records), self._folder)
        return records

    async def upload(
        self,
        name: str,
        payload: bytes,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        on_stage: StageCallback | None = None,
    ) -> UploadResult:
        path = self.stable_address(name)
        commit = await self._pipeline.publish(
            self._branch,
            path,
            payload,
            f"Upload video {name}",
            on_stage=on_stage,
            on_encode=on_progress,
        )
        record = AssetRecord(
            name=name,
            size=len(payload),
            content_type=content_type or mimetypes.guess_type(name)[0],
            identifier=commit.new_object_address,
            address=path,
            path=path,
        )
        return UploadResult(name=name, record=record, commit_id=commit.commit_id)

    async def delete(self, record: AssetRecord) -> str | None:
        path = record.path or self.stable_address(record.name)
        try:
            result = await self._transport.delete(
                f"{self._contents}/{quote(path, safe='/')}",
                json={
                    "message": f"Delete video {record.name}",
                    "sha": record.identifier,
                    "branch": self._branch,
                },
            )
        except AuthError:
            raise
        except TransportError as exc:
            if exc.status in (409, 422):
                raise ConcurrentModification(path, exc.message) from exc
            raise
        logger.info("Deleted %s", path)
        return ((result or {}).get("commit") or {}).get("sha")
