# src/encoding/content_encoder.py — v1
"""Binary payload -> base64 wire encoding for small-file writes.

Encoding happens in chunks whose size is a multiple of 3 bytes, so the
concatenated output is byte-identical to a one-shot encode while
progress is reported as the payload is consumed.
"""

from __future__ import annotations

import asyncio
import base64
import re
from typing import Iterator

from playlist_publisher.core.progress import ProgressCallback, safe_progress

DEFAULT_CHUNK_SIZE = 0x8000 * 3
MAX_FILE_NAME_LENGTH = 180
FALLBACK_FILE_NAME = "video.mp4"


def _iter_chunks(payload: bytes, chunk_size: int) -> Iterator[tuple[str, int]]:
    """Yield (encoded chunk, cumulative percentage) pairs."""
    step = max(3, chunk_size - chunk_size % 3)
    total = len(payload)
    for offset in range(0, total, step):
        encoded = base64.b64encode(payload[offset:offset + step]).decode("ascii")
        yield encoded, min(100, (offset + step) * 100 // total)


def encode_base64(
    payload: bytes,
    on_progress: ProgressCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Encode ``payload`` as base64 text.

    Args:
        payload: Raw bytes.
        on_progress: Receives integer percentages, monotonic, ending at 100.
        chunk_size: Bytes per step; rounded down to a multiple of 3.

    Returns:
        ASCII base64 text without line breaks.
    """
    report = safe_progress(on_progress)
    if not payload:
        report(100)
        return ""

    parts: list[str] = []
    for encoded, pct in _iter_chunks(payload, chunk_size):
        parts.append(encoded)
        report(pct)
    return "".join(parts)


async def aencode_base64(
    payload: bytes,
    on_progress: ProgressCallback | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> str:
    """Like :func:`encode_base64`, yielding to the event loop between chunks."""
    report = safe_progress(on_progress)
    if not payload:
        report(100)
        return ""

    parts: list[str] = []
    for encoded, pct in _iter_chunks(payload, chunk_size):
        parts.append(encoded)
        report(pct)
        await asyncio.sleep(0)
    return "".join(parts)


def encode_text(text: str) -> str:
    """UTF-8 encode then base64 (manifest documents)."""
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_text(content: str) -> str:
    """Inverse of :func:`encode_text`; tolerates the API's embedded newlines."""
    return base64.b64decode(content.replace("\n", "")).decode("utf-8")


def sanitize_file_name(name: str) -> str:
    """Conservative file name for repository paths and asset names.

    Whitespace runs become ``_``; anything outside ``[A-Za-z0-9._-]`` is
    dropped; repeated underscores collapse; the result is truncated.
    """
    cleaned = re.sub(r"\s+", "_", name)
    cleaned = re.sub(r"[^a-zA-Z0-9._-]", "", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    cleaned = cleaned[:MAX_FILE_NAME_LENGTH]
    return cleaned or FALLBACK_FILE_NAME
