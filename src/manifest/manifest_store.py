# src/manifest/manifest_store.py — v1
"""Read/write the ordered manifest document through the contents API.

The document is a JSON array of strings, pretty-printed with a trailing
newline. Writes carry the revision token (blob sha) read last time, so
the backend rejects them if the document moved in between.
"""

from __future__ import annotations

import json
import logging
from urllib.parse import quote

from playlist_publisher.core.errors import (
    AuthError,
    ConcurrentModification,
    InvalidManifest,
    NotFoundError,
    TransportError,
)
from playlist_publisher.core.models import ManifestSnapshot, ManifestWriteResult
from playlist_publisher.encoding.content_encoder import decode_text, encode_text
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Update videos.json playlist order"


def parse_manifest(text: str) -> list[str]:
    """Decode manifest text into clean entries.

    Non-string, blank and repeated entries are dropped. A document that is
    not a JSON array yields an empty list.

    Raises:
        InvalidManifest: If the text is not JSON at all.
    """
    try:
        data = json.loads(text) if text.strip() else []
    except json.JSONDecodeError as exc:
        raise InvalidManifest(f"Manifest is not valid JSON: {exc}") from exc
    if not isinstance(data, list):
        return []

    entries: list[str] = []
    seen: set[str] = set()
    for item in data:
        if isinstance(item, str) and item.strip() and item not in seen:
            entries.append(item)
            seen.add(item)
    return entries


def serialize_manifest(entries: list[str]) -> str:
    """Encode entries exactly as the playback client expects them.

    Raises:
        InvalidManifest: On non-string, blank or duplicate entries.
    """
    seen: set[str] = set()
    for entry in entries:
        if not isinstance(entry, str) or not entry.strip():
            raise InvalidManifest(f"Invalid manifest entry: {entry!r}")
        if entry in seen:
            raise InvalidManifest(f"Duplicate manifest entry: {entry!r}")
        seen.add(entry)
    return json.dumps(list(entries), indent=2, ensure_ascii=False) + "\n"


class ManifestStore:
    """Versioned access to one manifest document."""

    def __init__(
        self,
        transport: GitHubTransport,
        owner: str,
        repo: str,
        path: str = "videos.json",
    ) -> None:
        self._transport = transport
        self._path = path
        self._url = f"/repos/{owner}/{repo}/contents/{quote(path, safe='/')}"

    @property
    def path(self) -> str:
        return self._path

    async def read(self, branch: str | None = None) -> ManifestSnapshot:
        """Fetch entries and revision token.

        A missing document is the empty state (no revision). A corrupt
        document is reported and treated as empty, keeping its revision so
        the next write replaces it.
        """
        params = {"ref": branch} if branch else None
        try:
            doc = await self._transport.get(self._url, params=params)
        except NotFoundError:
            logger.info("%s not found; starting from an empty playlist", self._path)
            return ManifestSnapshot()

        if not isinstance(doc, dict) or doc.get("type") != "file":
            raise InvalidManifest(f"Expected file at {self._path}")

        revision = doc.get("sha")
        try:
            entries = parse_manifest(decode_text(doc.get("content") or ""))
        except (InvalidManifest, ValueError) as exc:
            logger.warning("Ignoring unreadable %s: %s", self._path, exc)
            entries = []
        return ManifestSnapshot(entries=entries, revision=revision)

    async def write(
        self,
        entries: list[str],
        revision: str | None,
        message: str = DEFAULT_MESSAGE,
        branch: str | None = None,
    ) -> ManifestWriteResult:
        """Replace the document, conditional on ``revision``.

        Returns:
            The new snapshot (fresh revision token) and the commit sha.

        Raises:
            InvalidManifest: Entries would not serialize to a valid playlist.
            ConcurrentModification: Document changed since ``revision`` was read.
        """
        body_text = serialize_manifest(entries)
        payload: dict[str, str] = {"message": message, "content": encode_text(body_text)}
        if revision:
            payload["sha"] = revision
        if branch:
            payload["branch"] = branch

        try:
            result = await self._transport.put(self._url, json=payload)
        except AuthError:
            raise
        except TransportError as exc:
            if exc.status in (409, 422):
                raise ConcurrentModification(self._path, exc.message) from exc
            raise

        result = result or {}
        new_revision = (result.get("content") or {}).get("sha") or revision
        commit_id = (result.get("commit") or {}).get("sha")
        logger.info("Wrote %s (%d entries)", self._path, len(entries))
        return ManifestWriteResult(
            snapshot=ManifestSnapshot(entries=list(entries), revision=new_revision),
            commit_id=commit_id,
        )
