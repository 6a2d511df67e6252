# src/storage/directory_factory.py — v1
"""Factory: instantiate the asset directory backend from configuration."""

from __future__ import annotations

from playlist_publisher.config.settings import Settings
from playlist_publisher.publish.commit_pipeline import CommitPipeline
from playlist_publisher.storage.base_asset_directory import BaseAssetDirectory
from playlist_publisher.transport.github_transport import GitHubTransport


def create_asset_directory(
    settings: Settings,
    transport: GitHubTransport,
    branch: str,
    owner: str | None = None,
    repo: str | None = None,
) -> BaseAssetDirectory:
    """Create the backend named by STORAGE_BACKEND.

    Args:
        settings: Application settings.
        transport: Authenticated transport shared by the session.
        branch: Resolved target branch.
        owner: Repository owner (defaults to GITHUB_OWNER).
        repo: Repository name (defaults to GITHUB_REPO).

    Raises:
        ValueError: If the backend is unsupported or the repository is unknown.
    """
    owner = owner or settings.github_owner
    repo = repo or settings.github_repo
    if not owner or not repo:
        raise ValueError("GITHUB_OWNER and GITHUB_REPO must be set")

    if settings.storage_backend == "folder":
        from playlist_publisher.storage.folder_directory import FolderAssetDirectory
        return FolderAssetDirectory(
            transport=transport,
            pipeline=CommitPipeline(transport, owner, repo),
            owner=owner,
            repo=repo,
            branch=branch,
            folder=settings.media_folder,
        )

    if settings.storage_backend == "release":
        from playlist_publisher.storage.release_directory import ReleaseAssetDirectory
        return ReleaseAssetDirectory(
            transport=transport,
            owner=owner,
            repo=repo,
            tag=settings.release_tag,
            release_name=settings.release_name,
            target_branch=branch,
            web_url=settings.github_web_url,
            upload_url=settings.github_upload_url,
        )

    raise ValueError(f"Unsupported storage backend: {settings.storage_backend!r}")
