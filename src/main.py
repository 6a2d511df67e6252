# src/main.py — v1
"""CLI entry point — list, upload, delete, reorder, watch commands.

Usage:
    playlist-publisher list
    playlist-publisher upload <file>... [--no-watch]
    playlist-publisher delete <name> [--no-watch]
    playlist-publisher reorder <name>... [--no-watch]
    playlist-publisher watch <commit-sha>

Repository and token come from .env / environment (GITHUB_TOKEN,
GITHUB_OWNER, GITHUB_REPO); --repo and --branch override them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from playlist_publisher.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        settings = _load_settings(args)
    except Exception as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    _setup_logging(settings, args.verbose)

    try:
        return asyncio.run(_run(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="playlist-publisher",
        description=f"playlist-publisher v{__version__}: manage a Git-hosted media playlist",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--repo", default=None,
        help="Repository as owner/name (default: GITHUB_OWNER/GITHUB_REPO)",
    )
    parser.add_argument(
        "--branch", default=None,
        help="Target branch (default: repository default branch)",
    )
    parser.add_argument(
        "--backend", choices=["folder", "release"], default=None,
        help="Storage backend (default: STORAGE_BACKEND or folder)",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- list ---
    p_list = subparsers.add_parser("list", help="Show the reconciled playlist")
    p_list.set_defaults(func=_cmd_list)

    # --- upload ---
    p_upload = subparsers.add_parser("upload", help="Upload media files")
    p_upload.add_argument("files", type=Path, nargs="+", help="Files to upload")
    _add_watch_flag(p_upload)
    p_upload.set_defaults(func=_cmd_upload)

    # --- delete ---
    p_delete = subparsers.add_parser("delete", help="Delete one media file")
    p_delete.add_argument("name", help="Logical name or stable address")
    _add_watch_flag(p_delete)
    p_delete.set_defaults(func=_cmd_delete)

    # --- reorder ---
    p_reorder = subparsers.add_parser(
        "reorder", help="Save a new playback order (all entries, in order)",
    )
    p_reorder.add_argument("entries", nargs="+", help="Entries in the new order")
    _add_watch_flag(p_reorder)
    p_reorder.set_defaults(func=_cmd_reorder)

    # --- watch ---
    p_watch = subparsers.add_parser("watch", help="Watch the CI run for a commit")
    p_watch.add_argument("commit", help="Commit sha")
    p_watch.set_defaults(func=_cmd_watch)

    return parser


def _add_watch_flag(sub: argparse.ArgumentParser) -> None:
    sub.add_argument(
        "--no-watch", action="store_true",
        help="Do not wait for the CI run triggered by the commit",
    )


def _load_settings(args: argparse.Namespace):
    from playlist_publisher.config.settings import load_settings

    overrides: dict[str, object] = {}
    if args.repo:
        overrides["repo"] = args.repo
    if args.branch:
        overrides["github_branch"] = args.branch
    if args.backend:
        overrides["storage_backend"] = args.backend
    return load_settings(**overrides)


async def _run(args: argparse.Namespace, settings) -> int:
    from playlist_publisher.api.facade import PlaylistAdmin

    async with PlaylistAdmin.from_settings(settings) as admin:
        await admin.connect()
        return await args.func(admin, args)


async def _cmd_list(admin, args: argparse.Namespace) -> int:
    """Print the reconciled playlist."""
    entries = await admin.refresh()
    snapshot = admin.context.snapshot
    if not entries:
        print("No videos yet. Upload some files.")
        return 0
    for i, entry in enumerate(entries, start=1):
        record = snapshot.resolve(entry)
        size = f"{record.size:>12,d} B" if record else "     missing"
        print(f"{i:3d}. {size}  {entry}")
    return 0


async def _cmd_upload(admin, args: argparse.Namespace) -> int:
    """Upload files and update the manifest."""
    from playlist_publisher.api.models import MediaFile

    missing = [p for p in args.files if not p.is_file()]
    if missing:
        logger.error("File not found: %s", ", ".join(str(p) for p in missing))
        return 1

    await admin.refresh()
    files = [MediaFile.from_path(p) for p in args.files]
    result = await admin.upload(
        files,
        watch=not args.no_watch,
        on_stage=_print_stage,
        on_status=_print_run_status,
    )
    print(f"Uploaded: {', '.join(result.uploaded)}")
    return _exit_code(result.run_status)


async def _cmd_delete(admin, args: argparse.Namespace) -> int:
    """Delete a file and update the manifest."""
    await admin.refresh()
    result = await admin.delete(
        args.name, watch=not args.no_watch, on_status=_print_run_status,
    )
    print(f"Deleted {args.name}; {len(result.entries)} entries remain")
    return _exit_code(result.run_status)


async def _cmd_reorder(admin, args: argparse.Namespace) -> int:
    """Persist a full new order."""
    await admin.refresh()
    result = await admin.reorder(
        list(args.entries), watch=not args.no_watch, on_status=_print_run_status,
    )
    print("Saved order:")
    for i, entry in enumerate(result.entries, start=1):
        print(f"{i:3d}. {entry}")
    return _exit_code(result.run_status)


async def _cmd_watch(admin, args: argparse.Namespace) -> int:
    """Watch the CI run for an existing commit."""
    status = await admin.watch(args.commit, on_status=_print_run_status)
    return _exit_code(status)


def _exit_code(run_status) -> int:
    """Non-zero only for an observed failed run."""
    if run_status is not None and run_status.phase.value == "completed-failure":
        return 2
    return 0


def _print_stage(pct: int, label: str) -> None:
    print(f"  [{pct:3d}%] {label}")


def _print_run_status(status) -> None:
    line = f"  CI {status.short_commit}: {status.phase.value} {status.run_text}"
    if status.run_url:
        line += f" {status.run_url}"
    print(line)


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from playlist_publisher.logging.logger import configure_logging

    configure_logging(settings, verbose=verbose)


if __name__ == "__main__":
    sys.exit(main())
