# src/config/settings.py — v1
"""Typed configuration loaded from .env via pydantic-settings.

Single source of truth for repository coordinates, storage backend
selection, HTTP behaviour, CI polling budget and logging.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is internally inconsistent."""


_SIZE_UNITS = {"B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}
_SIZE_PATTERN = re.compile(r"^(\d+)\s*(B|KB|MB|GB)$", re.IGNORECASE)


def parse_size(size: str) -> int:
    """``"10MB"`` -> bytes. Units B, KB, MB, GB (binary multiples)."""
    match = _SIZE_PATTERN.match(size.strip())
    if not match:
        raise ValueError(f"Invalid size {size!r}, expected e.g. \"10MB\"")
    return int(match.group(1)) * _SIZE_UNITS[match.group(2).upper()]


class Settings(BaseSettings):
    """Application settings loaded from .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === GitHub ===
    github_token: str = ""
    github_owner: str = ""
    github_repo: str = ""
    github_branch: str = ""  # empty = repository default branch
    github_api_url: str = "https://api.github.com"
    github_upload_url: str = "https://uploads.github.com"
    github_web_url: str = "https://github.com"

    # === Storage backend ===
    storage_backend: Literal["folder", "release"] = "folder"
    media_folder: str = "videos"
    manifest_path: str = "videos.json"
    release_tag: str = "media"
    release_name: str = "Media assets"

    # === HTTP ===
    http_timeout_s: float = 60.0
    http_max_retries: int = 3
    http_retry_base_delay_s: float = 1.0

    # === CI polling ===
    poll_interval_s: float = 3.0
    poll_timeout_s: float = 180.0
    poll_runs_per_page: int = 20

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    # --- Validators ---

    @field_validator("media_folder", "manifest_path")
    @classmethod
    def strip_slashes(cls, v: str) -> str:  # noqa: N805
        """Repository paths are relative, without leading/trailing slashes."""
        return v.strip().strip("/")

    @field_validator("http_max_retries", "poll_runs_per_page", "log_retention")
    @classmethod
    def validate_non_negative(cls, v: int, info) -> int:  # noqa: N805
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("log_rotation")
    @classmethod
    def validate_log_rotation(cls, v: str) -> str:  # noqa: N805
        parse_size(v)
        return v.strip().upper()

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Validate cross-field consistency rules."""
        errors: list[str] = []

        if bool(self.github_owner) != bool(self.github_repo):
            errors.append("GITHUB_OWNER and GITHUB_REPO must be set together")

        if self.storage_backend == "release" and not self.release_tag.strip():
            errors.append("STORAGE_BACKEND=release requires RELEASE_TAG")

        if self.storage_backend == "folder" and not self.media_folder:
            errors.append("STORAGE_BACKEND=folder requires MEDIA_FOLDER")

        if not self.manifest_path:
            errors.append("MANIFEST_PATH must not be empty")

        if self.poll_interval_s <= 0:
            errors.append("POLL_INTERVAL_S must be > 0")
        elif self.poll_interval_s >= self.poll_timeout_s:
            errors.append("POLL_INTERVAL_S must be < POLL_TIMEOUT_S")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def repo_slug(self) -> str:
        """``owner/repo`` string (empty when not configured)."""
        if not self.github_owner:
            return ""
        return f"{self.github_owner}/{self.github_repo}"

    @property
    def log_rotation_bytes(self) -> int:
        """Size at which the log file rolls over."""
        return parse_size(self.log_rotation)


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Split an ``owner/repo`` slug.

    Raises:
        ConfigurationError: If the slug is not exactly two non-empty parts.
    """
    parts = [p for p in slug.strip().strip("/").split("/") if p]
    if len(parts) != 2:
        raise ConfigurationError(f"Expected owner/repo, got {slug!r}")
    return parts[0], parts[1]


def load_settings(**overrides: object) -> Settings:
    """Load settings from .env with optional overrides.

    Args:
        **overrides: Field-level overrides (for testing or CLI flags).
            ``repo="owner/name"`` is accepted as a shorthand for
            ``github_owner`` + ``github_repo``.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    slug = overrides.pop("repo", None)
    if slug:
        owner, repo = parse_repo_slug(str(slug))
        overrides.setdefault("github_owner", owner)
        overrides.setdefault("github_repo", repo)
    return Settings(**overrides)  # type: ignore[arg-type]
