# src/transport/retry.py — v1
"""Retry policy with exponential backoff for idempotent reads.

Writes are never routed through here: each user operation performs at
most one write per remote object.
"""

from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from playlist_publisher.core.errors import TransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """Retry configuration for transient read failures."""

    max_retries: int = 3
    base_delay_s: float = 1.0
    backoff_factor: float = 2.0
    jitter: bool = True


DEFAULT_RETRY_CONFIG = RetryConfig()


def is_retryable(error: Exception) -> bool:
    """Only transient transport failures (429, 5xx, network) are retried."""
    return isinstance(error, TransportError) and error.is_transient


def _compute_delay(config: RetryConfig, attempt: int) -> float:
    """Compute delay for a given attempt (0-based)."""
    delay = config.base_delay_s * (config.backoff_factor ** attempt)
    if config.jitter:
        delay *= 0.5 + random.random()  # noqa: S311
    return delay


async def with_retry(
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    label: str = "request",
    config: RetryConfig | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any,
) -> Any:
    """Execute an async function, retrying transient failures.

    The last error is re-raised unchanged once retries are exhausted, so
    callers keep seeing the normal error taxonomy.
    """
    config = config or DEFAULT_RETRY_CONFIG
    attempts = 0

    while True:
        try:
            return await fn(*args, **kwargs)
        except Exception as e:
            if not is_retryable(e):
                raise
            attempts += 1
            if attempts > config.max_retries:
                raise

            delay = _compute_delay(config, attempts - 1)
            logger.warning(
                "%s failed (%s, attempt %d/%d), retrying in %.1fs",
                label, e, attempts, config.max_retries, delay,
            )
            await sleep(delay)
