# src/core/errors.py — v1
"""Error taxonomy for the publish pipeline.

Every remote failure surfaces as a subclass of PublisherError so the
operation boundary (api/facade.py) can report it on the status indicator.
"""

from __future__ import annotations

from typing import Any


class PublisherError(Exception):
    """Base class for all publisher failures."""


class TransportError(PublisherError):
    """Non-2xx response (or network failure) from the remote store.

    ``message`` is the backend message verbatim; ``status`` is None for
    network-level failures that never produced a response.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        details: Any = None,
    ) -> None:
        self.message = message
        self.status = status
        self.details = details
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """True for failures worth retrying on idempotent reads."""
        return self.status is None or self.status == 429 or self.status >= 500


class AuthError(TransportError):
    """Missing or rejected credential. Fatal to the whole session."""


class NotFoundError(TransportError):
    """Expected-absent resource (404)."""


class RefNotFound(PublisherError):
    """The target branch does not exist."""

    def __init__(self, branch: str) -> None:
        self.branch = branch
        super().__init__(f"Could not resolve head for branch {branch!r}")


class InconsistentHistory(PublisherError):
    """A commit object came back without the tree it must reference."""


class StorageWriteRejected(PublisherError):
    """The backend refused to create an object (quota, permission, size)."""

    def __init__(self, step: str, message: str, status: int | None = None) -> None:
        self.step = step
        self.status = status
        super().__init__(f"{step} rejected: {message}")


class ConcurrentModification(PublisherError):
    """The branch or document moved since it was read; restart the operation."""

    def __init__(self, target: str, message: str = "") -> None:
        self.target = target
        detail = f": {message}" if message else ""
        super().__init__(f"{target} was modified concurrently{detail}")


class InvalidManifest(PublisherError):
    """Refused to serialize a manifest that would not be a valid playlist."""


class PollingUnavailable(PublisherError):
    """CI run list could not be queried (typically missing Actions: read)."""


class PollTimeout(PublisherError):
    """No terminal CI state was observed within the polling budget."""
