# src/logging/logger.py — v1
"""Logger factory, formatters and credential redaction.

Records emitted under the ``playlist_publisher`` logger carry the active
operation, commit and poll session (see logging/context.py).
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, Any

from playlist_publisher.logging.context import LogContext, get_context

if TYPE_CHECKING:
    from playlist_publisher.config.settings import Settings

ROOT_LOGGER_NAME = "playlist_publisher"

# Classic and fine-grained GitHub tokens, plus any bearer header value.
_TOKEN_PATTERN = re.compile(
    r"(gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,}|(?<=Bearer )[^\s\"']+)"
)
REDACTED = "***"


def redact(text: str) -> str:
    """Mask anything that looks like a GitHub credential."""
    return _TOKEN_PATTERN.sub(REDACTED, text)


class RedactingFilter(logging.Filter):
    """Rewrites the rendered message so tokens never reach a handler."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        cleaned = redact(message)
        if cleaned != message:
            record.msg = cleaned
            record.args = None
        return True


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shipping."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line terminal format:

    ``2024-05-01 10:00:00 [INFO    ] playlist_publisher.x [upload] (1a2b3c4) <poll#2> - msg``
    """

    def format(self, record: logging.LogRecord) -> str:
        line = " ".join([
            _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
            f"[{record.levelname:8s}]",
            record.name,
            *_context_tags(get_context()),
            f"- {record.getMessage()}",
        ])
        if record.exc_info and record.exc_info[1] is not None:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _context_tags(ctx: LogContext) -> list[str]:
    tags = []
    if ctx.operation:
        tags.append(f"[{ctx.operation}]")
    if ctx.commit:
        tags.append(f"({ctx.commit[:7]})")
    if ctx.poll_session is not None:
        tags.append(f"<poll#{ctx.poll_session}>")
    return tags


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger. Configuration is applied by setup_logging()."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def setup_logging(
    level: str = "INFO",
    log_format: str = "text",
    log_file: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """(Re)configure the package logger. Safe to call more than once.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR).
        log_format: "json" or "text".
        log_file: Optional file to mirror stderr output into, size-rotated.
            Parent directories are created.
        max_bytes: Size at which the file rolls over.
        backup_count: Rotated files kept next to the active one.
    """
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    package_logger.handlers.clear()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(RotatingFileHandler(
            path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8",
        ))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(RedactingFilter())
        package_logger.addHandler(handler)

    # httpx logs full request lines at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def configure_logging(settings: Settings, verbose: bool = False) -> None:
    """Apply the LOG_* settings; ``verbose`` forces DEBUG."""
    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        max_bytes=settings.log_rotation_bytes,
        backup_count=settings.log_retention,
    )
