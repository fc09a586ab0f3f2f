"""Command line interface for fileuploader package."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from rich.logging import RichHandler

from . import __version__
from .cli_progress import UploadProgressDisplay, render_configuration_summary


class CLIError(RuntimeError):
    """Raised when CLI validation/execution fails."""


def _setup_logging(debug: bool, silent: bool, log_level: Optional[str]) -> str:
    """Route logs through rich; silent unless --debug or --log-level is given."""
    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    logging.disable(logging.NOTSET)

    if silent or not (debug or log_level):
        logging.disable(logging.CRITICAL)
        return "silent"

    level = logging.DEBUG if debug else logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise CLIError(f"unknown log level: {log_level}")

    root_logger.addHandler(RichHandler(show_time=False, show_path=False, rich_tracebacks=True))
    root_logger.setLevel(level)
    return logging.getLevelName(level)


def _load_env_file(path: Path) -> None:
    """Export KEY=VALUE lines into os.environ; variables already set win."""
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError as exc:
        raise CLIError(f"could not read env file {path}: {exc}") from exc

    for line in lines:
        line = line.strip()
        if line.startswith("export "):
            line = line[len("export "):]
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        os.environ.setdefault(key, value.strip().strip("'\""))


def _build_config(args: argparse.Namespace):
    from .models import ConfigurationError, UploaderConfig

    try:
        return UploaderConfig.from_env(
            allowed_concurrent_upload=args.concurrency,
            allowed_file_count=args.max_files,
            min_allowed_file_size=args.min_size,
            max_allowed_file_size=args.max_size,
            allowed_file_types=tuple(args.types) if args.types else None,
        )
    except ConfigurationError as exc:
        raise CLIError(str(exc)) from exc


async def _run_upload(sources: List[Path], url: str, config, live: bool = True) -> int:
    from .orchestrator import FileCollector, FileUploader
    from .services.http_transport import http_handler_factory

    files = FileCollector.collect_files(sources)
    if not files:
        raise CLIError("no files found to upload")

    async with FileUploader(config, handler_factory=http_handler_factory(url)) as uploader:
        display = UploadProgressDisplay(uploader, live=live)
        display.attach()

        accepted = await uploader.add_files(files)
        if not accepted:
            raise CLIError("no file was accepted for upload")

        display.start()
        try:
            uploader.start_all()
            await uploader.wait()
        finally:
            display.stop()

        if uploader.is_complete():
            return 0

        stats = display.stats
        print(
            f"ERROR: {stats['failed']} failed, {stats['cancelled']} cancelled",
            file=sys.stderr,
        )
        return 1


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fileuploader",
        description="Upload files or folders to an HTTP endpoint with bounded concurrency.",
    )
    parser.add_argument("sources", nargs="*", type=Path, help="Files or folders to upload")
    parser.add_argument(
        "-u",
        "--url",
        default=None,
        help="Upload endpoint (default from UPLOADER_URL)",
    )
    parser.add_argument(
        "-j",
        "--concurrency",
        type=int,
        default=None,
        help="Simultaneous uploads (default from UPLOADER_ALLOWED_CONCURRENT_UPLOAD or 3)",
    )
    parser.add_argument("--max-files", type=int, default=None, help="Maximum number of files to accept")
    parser.add_argument("--min-size", type=int, default=None, help="Minimum file size in bytes")
    parser.add_argument("--max-size", type=int, default=None, help="Maximum file size in bytes")
    parser.add_argument(
        "-t",
        "--type",
        dest="types",
        action="append",
        default=None,
        help="Allowed MIME type or regex (repeatable, e.g. -t image/png -t '^video/')",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load environment variables from this .env file",
    )
    parser.add_argument("--no-live", action="store_true", help="Print a timeline instead of live bars")
    parser.add_argument("--debug", action="store_true", help="Enable debug logs")
    parser.add_argument("--silent", action="store_true", help="Only print errors")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Explicit log level (DEBUG/INFO/WARNING/ERROR)",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"fileuploader {__version__}",
    )
    return parser


def run_cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    default_env = Path(".env")
    used_env_file = args.env_file or (default_env if default_env.is_file() else None)
    try:
        if used_env_file is not None:
            _load_env_file(Path(used_env_file))
        effective_log_mode = _setup_logging(args.debug, args.silent, args.log_level)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not args.sources:
        parser.print_help()
        return 0

    sources = [Path(s).expanduser() for s in args.sources]
    missing = [s for s in sources if not s.exists()]
    if missing:
        print(f"ERROR: source does not exist: {missing[0]}", file=sys.stderr)
        return 1

    url = args.url or os.getenv("UPLOADER_URL")
    if not url:
        print("ERROR: no upload URL (use --url or set UPLOADER_URL)", file=sys.stderr)
        return 1

    try:
        config = _build_config(args)
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    render_configuration_summary(
        {
            "Sources": ", ".join(str(s) for s in sources),
            "URL": url,
            "Concurrency": config.allowed_concurrent_upload,
            "Max Files": config.allowed_file_count if config.is_count_limited else "unlimited",
            "Allowed Types": ", ".join(config.allowed_file_types) or "any",
            "Env File": str(used_env_file) if used_env_file else "-",
            "Logging": effective_log_mode,
        }
    )

    try:
        return asyncio.run(_run_upload(sources, url, config, live=not args.no_live))
    except CLIError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("Cancelled.", file=sys.stderr)
        return 130


def main() -> None:
    raise SystemExit(run_cli())


if __name__ == "__main__":
    main()
