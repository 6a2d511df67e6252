# src/publish/commit_pipeline.py — v1
"""Single-file atomic commit via the Git Data API.

Builds one commit from the tip of a branch plus one file change without
a working-tree checkout:

  1. resolve branch tip         GET   git/ref/heads/{branch}
  2. read tip's root tree       GET   git/commits/{tip}
  3. create blob                POST  git/blobs
  4. overlay one path on tree   POST  git/trees (base_tree)
  5. create commit (parent=tip) POST  git/commits
  6. move branch, non-forcing   PATCH git/refs/heads/{branch}

Only step 6 is externally visible. A failure anywhere leaves the branch
untouched; objects from steps 3-5 are orphaned and never referenced.
"""

from __future__ import annotations

import logging
from urllib.parse import quote

from playlist_publisher.core.errors import (
    AuthError,
    ConcurrentModification,
    InconsistentHistory,
    NotFoundError,
    RefNotFound,
    StorageWriteRejected,
    TransportError,
)
from playlist_publisher.core.models import CommitDescriptor
from playlist_publisher.core.progress import ProgressCallback, StageCallback, safe_progress
from playlist_publisher.encoding.content_encoder import aencode_base64
from playlist_publisher.transport.github_transport import GitHubTransport

logger = logging.getLogger(__name__)

FILE_MODE = "100644"


class CommitPipeline:
    """Publishes single-file changes to one repository."""

    def __init__(self, transport: GitHubTransport, owner: str, repo: str) -> None:
        self._transport = transport
        self._base = f"/repos/{owner}/{repo}/git"

    async def publish(
        self,
        base_branch: str,
        repo_path: str,
        payload: bytes,
        message: str,
        on_stage: StageCallback | None = None,
        on_encode: ProgressCallback | None = None,
    ) -> CommitDescriptor:
        """Commit ``payload`` at ``repo_path`` on ``base_branch``.

        Args:
            base_branch: Branch to advance by exactly one commit.
            repo_path: Path of the added/replaced file.
            payload: Raw file bytes.
            message: Commit message.
            on_stage: Receives (percent, label) as each step starts.
            on_encode: Receives encoding progress percentages.

        Returns:
            What was committed: base tip, path, blob sha and new commit sha.

        Raises:
            RefNotFound: Branch absent.
            InconsistentHistory: Tip commit has no tree.
            StorageWriteRejected: Blob/tree/commit creation refused.
            ConcurrentModification: Branch moved since step 1; restart from scratch.
        """
        stage = safe_progress(on_stage)
        content = await aencode_base64(payload, on_encode)

        stage(5, "Resolving branch head...")
        tip = await self.resolve_tip(base_branch)

        stage(15, "Reading head commit...")
        base_tree = await self.read_tree(tip)

        stage(40, "Creating blob...")
        blob_sha = await self._create_object(
            "blob", "blobs", {"content": content, "encoding": "base64"},
        )

        stage(65, "Creating tree...")
        tree_sha = await self._create_object(
            "tree", "trees",
            {
                "base_tree": base_tree,
                "tree": [
                    {"path": repo_path, "mode": FILE_MODE, "type": "blob", "sha": blob_sha},
                ],
            },
        )

        stage(82, "Creating commit...")
        commit_sha = await self._create_object(
            "commit", "commits",
            {"message": message, "tree": tree_sha, "parents": [tip]},
        )

        stage(95, "Updating branch ref...")
        await self.advance_ref(base_branch, commit_sha)

        stage(100, "Done")
        logger.info("Published %s on %s: %s -> %s", repo_path, base_branch, tip[:7], commit_sha[:7])
        return CommitDescriptor(
            base_revision=tip,
            changed_path=repo_path,
            new_object_address=blob_sha,
            message=message,
            commit_id=commit_sha,
        )

    async def resolve_tip(self, branch: str) -> str:
        """Step 1: current tip commit of ``branch``."""
        try:
            ref = await self._transport.get(f"{self._base}/ref/heads/{_ref_part(branch)}")
        except NotFoundError as exc:
            raise RefNotFound(branch) from exc
        sha = ((ref or {}).get("object") or {}).get("sha")
        if not sha:
            raise RefNotFound(branch)
        return sha

    async def read_tree(self, commit_sha: str) -> str:
        """Step 2: root tree of ``commit_sha``."""
        try:
            commit = await self._transport.get(f"{self._base}/commits/{commit_sha}")
        except NotFoundError as exc:
            raise InconsistentHistory(f"Commit {commit_sha} is missing") from exc
        tree_sha = ((commit or {}).get("tree") or {}).get("sha")
        if not tree_sha:
            raise InconsistentHistory(f"Commit {commit_sha} has no tree")
        return tree_sha

    async def advance_ref(self, branch: str, commit_sha: str) -> None:
        """Step 6: fast-forward ``branch`` to ``commit_sha`` (never forced)."""
        try:
            await self._transport.patch(
                f"{self._base}/refs/heads/{_ref_part(branch)}",
                json={"sha": commit_sha, "force": False},
            )
        except AuthError:
            raise
        except TransportError as exc:
            if exc.status in (409, 422):
                raise ConcurrentModification(f"refs/heads/{branch}", exc.message) from exc
            raise

    async def _create_object(self, kind: str, endpoint: str, body: dict) -> str:
        """Steps 3-5: allocate one immutable object and return its sha."""
        try:
            created = await self._transport.post(f"{self._base}/{endpoint}", json=body)
        except AuthError:
            raise
        except TransportError as exc:
            raise StorageWriteRejected(f"Create {kind}", exc.message, exc.status) from exc
        sha = (created or {}).get("sha")
        if not sha:
            raise StorageWriteRejected(f"Create {kind}", "response carried no sha")
        logger.debug("Created %s %s", kind, sha[:7])
        return sha


def _ref_part(branch: str) -> str:
    return quote(branch, safe="/")
