# src/transport/github_transport.py — v1
"""Authenticated request/response wrapper over the GitHub REST API.

Normalizes every failure into the PublisherError taxonomy:
401 -> AuthError, 404 -> NotFoundError, anything else -> TransportError
carrying the backend ``message`` verbatim.
"""

from __future__ import annotations

import logging
import time
from typing import Any, AsyncIterator

import httpx

from playlist_publisher.core.errors import AuthError, NotFoundError, TransportError
from playlist_publisher.core.progress import ProgressCallback, safe_progress
from playlist_publisher.transport.retry import RetryConfig, with_retry

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
UPLOAD_CHUNK_SIZE = 256 * 1024


class GitHubTransport:
    """Thin async client bound to one token.

    Use as an async context manager, or call :meth:`aclose` when done.
    """

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout_s: float = 60.0,
        retry: RetryConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize transport.

        Args:
            token: Personal access token (sent as a bearer credential).
            api_url: REST API root.
            timeout_s: Per-request timeout.
            retry: Retry policy for GET requests. Defaults to 3 retries.
            http_transport: Custom httpx transport (tests use MockTransport).
        """
        self._token = token.strip()
        self._retry = retry or RetryConfig()
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": API_VERSION,
        }
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout_s,
            transport=http_transport,
        )

    async def __aenter__(self) -> GitHubTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    @property
    def has_token(self) -> bool:
        return bool(self._token)

    # --- Verbs ---

    async def get(self, url: str, params: dict[str, Any] | None = None) -> Any:
        """GET with transient-failure retry."""
        return await with_retry(
            self.request, "GET", url, params=params,
            label=f"GET {url}", config=self._retry,
        )

    async def post(self, url: str, json: Any = None, **kwargs: Any) -> Any:
        return await self.request("POST", url, json=json, **kwargs)

    async def put(self, url: str, json: Any = None) -> Any:
        return await self.request("PUT", url, json=json)

    async def patch(self, url: str, json: Any = None) -> Any:
        return await self.request("PATCH", url, json=json)

    async def delete(self, url: str, json: Any = None) -> Any:
        return await self.request("DELETE", url, json=json)

    async def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        content: bytes | AsyncIterator[bytes] | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None if empty).

        Raises:
            AuthError: No token configured, or 401 from the backend.
            NotFoundError: 404 from the backend.
            TransportError: Any other failure.
        """
        if not self._token:
            raise AuthError("No token set. Configure GITHUB_TOKEN first.")

        start = time.monotonic()
        try:
            response = await self._client.request(
                method, url, json=json, params=params,
                content=content, headers=headers,
            )
        except httpx.HTTPError as exc:
            logger.debug("%s %s failed: %s", method, url, exc)
            raise TransportError(f"{type(exc).__name__}: {exc}") from exc

        latency_ms = int((time.monotonic() - start) * 1000)
        logger.debug(
            "%s %s -> %d (%d ms)", method, url, response.status_code, latency_ms,
        )
        return _decode(response)

    async def upload_bytes(
        self,
        url: str,
        payload: bytes,
        content_type: str = "application/octet-stream",
        on_progress: ProgressCallback | None = None,
        chunk_size: int = UPLOAD_CHUNK_SIZE,
    ) -> Any:
        """POST a raw binary body in chunks, reporting percentage progress.

        Never retried. Progress callback failures are logged and ignored.
        """
        report = safe_progress(on_progress)
        total = len(payload)

        async def _body() -> AsyncIterator[bytes]:
            sent = 0
            report(0)
            for offset in range(0, total, chunk_size):
                chunk = payload[offset:offset + chunk_size]
                sent += len(chunk)
                yield chunk
                report(int(sent * 100 / total))
            if total == 0:
                report(100)

        return await self.request(
            "POST", url,
            content=_body(),
            headers={"Content-Type": content_type, "Content-Length": str(total)},
        )


def _decode(response: httpx.Response) -> Any:
    """Parse the body and raise the normalized error for non-2xx codes."""
    text = response.text
    data: Any = None
    if text:
        try:
            data = response.json()
        except ValueError:
            data = None

    if response.is_success:
        return data

    status = response.status_code
    message = data.get("message") if isinstance(data, dict) else None
    message = message or text or f"HTTP {status}"

    if status == 401:
        raise AuthError(message, status=status, details=data)
    if status == 404:
        raise NotFoundError(message, status=status, details=data)
    raise TransportError(message, status=status, details=data)
