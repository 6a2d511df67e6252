# src/storage/release_directory.py — v1
"""Release backend: media files are assets attached to one named release.

Assets are addressed by GitHub's download URL template
``{web}/{owner}/{repo}/releases/download/{tag}/{name}``, which stays
stable for as long as an asset with that name exists.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Any
from urllib.parse import quote

from playlist_publisher.core.errors import (
    AuthError,
    NotFoundError,
    StorageWriteRejected,
    TransportError,
)
from playlist_publisher.core.models import AssetRecord, UploadResult
from playlist_publisher.core.progress import ProgressCallback, StageCallback, safe_progress
from playlist_publisher.storage.base_asset_directory import BaseAssetDirectory
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)

ASSETS_PAGE_SIZE = 100


class ReleaseAssetDirectory(BaseAssetDirectory):
    """Assets of the release tagged ``tag``."""

    reference_style = "address"

    def __init__(
        self,
        transport: GitHubTransport,
        owner: str,
        repo: str,
        tag: str,
        release_name: str = "Media assets",
        target_branch: str | None = None,
        web_url: str = "https://github.com",
        upload_url: str = "https://uploads.github.com",
    ) -> None:
        self._transport = transport
        self._owner = owner
        self._repo = repo
        self._tag = tag
        self._release_name = release_name
        self._target_branch = target_branch
        self._web_url = web_url.rstrip("/")
        self._upload_url = upload_url.rstrip("/")
        self._api = f"/repos/{owner}/{repo}/releases"
        self._release: dict[str, Any] | None = None

    @property
    def backend_name(self) -> str:
        return "release"

    def stable_address(self, name: str) -> str:
        return (
            f"{self._web_url}/{self._owner}/{self._repo}/releases/download/"
            f"{quote(self._tag, safe='')}/{quote(name, safe='')}"
        )

    async def ensure_collection(self) -> None:
        """Fetch the release, creating it on first use."""
        await self._ensure_release()

    async def _ensure_release(self) -> dict[str, Any]:
        if self._release is not None:
            return self._release
        release = await self._fetch_release()
        if release is None:
            body: dict[str, Any] = {
                "tag_name": self._tag,
                "name": self._release_name,
                "draft": False,
                "prerelease": False,
            }
            if self._target_branch:
                body["target_commitish"] = self._target_branch
            release = await self._transport.post(self._api, json=body)
            logger.info("Created release %s", self._tag)
        self._release = release
        return release

    async def _fetch_release(self) -> dict[str, Any] | None:
        try:
            return await self._transport.get(f"{self._api}/tags/{quote(self._tag, safe='')}")
        except NotFoundError:
            return None

    async def list_assets(self) -> dict[str, AssetRecord]:
        release = self._release or await self._fetch_release()
        if release is None:
            logger.info("Release %s does not exist yet", self._tag)
            return {}
        self._release = release

        records: dict[str, AssetRecord] = {}
        page = 1
        while True:
            assets = await self._transport.get(
                f"{self._api}/{release['id']}/assets",
                params={"per_page": ASSETS_PAGE_SIZE, "page": page},
            ) or []
            for asset in assets:
                record = self._to_record(asset)
                records[record.name] = record
            if len(assets) < ASSETS_PAGE_SIZE:
                break
            page += 1
        logger.debug("Listed %d asset(s) on release %s", len(records), self._tag)
        return records

    async def upload(
        self,
        name: str,
        payload: bytes,
        content_type: str | None = None,
        on_progress: ProgressCallback | None = None,
        on_stage: StageCallback | None = None,
    ) -> UploadResult:
        stage = safe_progress(on_stage)
        stage(5, "Ensuring release...")
        release = await self._ensure_release()

        stage(10, "Uploading asset...")
        url = (
            f"{self._upload_url}/repos/{self._owner}/{self._repo}/releases/"
            f"{release['id']}/assets?name={quote(name, safe='')}"
        )
        try:
            asset = await self._transport.upload_bytes(
                url,
                payload,
                content_type=content_type or mimetypes.guess_type(name)[0]
                or "application/octet-stream",
                on_progress=on_progress,
            )
        except AuthError:
            raise
        except TransportError as exc:
            raise StorageWriteRejected("Upload asset", exc.message, exc.status) from exc
        if not isinstance(asset, dict) or "id" not in asset:
            raise StorageWriteRejected("Upload asset", "response carried no asset id")

        stage(100, "Done")
        logger.info("Uploaded asset %s (%d bytes)", name, len(payload))
        return UploadResult(name=name, record=self._to_record(asset))

    async def delete(self, record: AssetRecord) -> str | None:
        await self._transport.delete(f"{self._api}/assets/{record.identifier}")
        logger.info("Deleted asset %s", record.name)
        return None

    def _to_record(self, asset: dict[str, Any]) -> AssetRecord:
        name = asset["name"]
        return AssetRecord(
            name=name,
            size=asset.get("size", 0),
            content_type=asset.get("content_type"),
            identifier=str(asset["id"]),
            address=self.stable_address(name),
        )
