# src/core/progress.py — v1
"""Progress callback guard.

Progress reporting is advisory: a failing callback must never abort the
transfer it reports on.
"""

from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], None]
StageCallback = Callable[[int, str], None]


def safe_progress(callback: Callable[..., None] | None) -> Callable[..., None]:
    """Wrap a progress/stage callback so exceptions are logged and dropped."""
    if callback is None:
        return _noop

    def _guarded(*args: object) -> None:
        try:
            callback(*args)
        except Exception:
            logger.warning("Progress callback raised; ignoring", exc_info=True)

    return _guarded


def _noop(*args: object) -> None:
    return None
