"""CLI entry point for dirsnap — I/O boundary only."""

from __future__ import annotations

import argparse
import io
import logging
import sys
from pathlib import Path
from typing import TextIO

from dirsnap import (
    CacheNotFoundError,
    CacheWriteError,
    DirsnapError,
    InvalidInputError,
    __version__,
)
from dirsnap.cache import read_cache
from dirsnap.config import DirsnapConfig, load_config_file
from dirsnap.emitter import StreamEmitter
from dirsnap.scheduler import RefreshScheduler, walk_options_for
from dirsnap.walker import walk_roots

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    """Build and return the CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured parser for the ``dirsnap`` command.
    """
    parser = argparse.ArgumentParser(
        prog="dirsnap",
        description="list directories under roots, pruning forbidden prefixes, "
        "live or from a periodically refreshed cache",
    )
    parser.add_argument(
        "roots",
        nargs="*",
        help="Root directories to walk (default: current directory)",
    )
    parser.add_argument(
        "-r",
        "--root",
        action="append",
        default=[],
        dest="extra_roots",
        help="Additional root directory (can be specified multiple times)",
    )
    parser.add_argument(
        "-f",
        "--forbidden",
        action="append",
        default=[],
        dest="forbidden",
        help="Skip directories whose name starts with PREFIX "
        "(can be specified multiple times)",
        metavar="PREFIX",
    )
    parser.add_argument(
        "-m",
        "--max-depth",
        type=int,
        default=None,
        dest="max_depth",
        help="Max levels to descend below each root (default: unlimited)",
    )
    parser.add_argument(
        "--preset",
        type=str,
        default=None,
        help="Add forbidden prefixes for a project type (python, node, rust, generic)",
    )
    parser.add_argument(
        "--gitignore",
        action="store_true",
        default=None,
        help="Also skip directories ignored by each root's .gitignore",
    )
    parser.add_argument(
        "--sort",
        action="store_true",
        default=None,
        help="Visit sibling directories in name order",
    )
    parser.add_argument(
        "--follow-symlinks",
        action="store_true",
        default=None,
        dest="follow_symlinks",
        help="Descend into symlinked directories",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--cache",
        action="store_const",
        const="cache",
        dest="mode",
        help="Print the cached snapshot instead of walking",
    )
    mode.add_argument(
        "--refresh",
        action="store_const",
        const="refresh",
        dest="mode",
        help="Walk now and commit the result to the cache",
    )
    mode.add_argument(
        "--daemon",
        action="store_const",
        const="daemon",
        dest="mode",
        help="Refresh the cache repeatedly until interrupted",
    )
    parser.set_defaults(mode="live")

    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between refreshes in --daemon mode (default: 300)",
    )
    parser.add_argument(
        "--cache-file",
        type=Path,
        default=None,
        dest="cache_path",
        help="Cache file location (default: per-user cache directory)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        dest="config_path",
        help="JSON config file (default: per-user config directory)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def run_dirsnap(argv: list[str] | None = None, stream: TextIO | None = None) -> None:
    """Run dirsnap with provided CLI args, writing paths to *stream*.

    This is the primary test target for CLI behavior.

    Args:
        argv: Command-line argument list without program name. If ``None``,
            uses process arguments via ``argparse`` defaults.
        stream: Output stream. Defaults to ``sys.stdout``.

    Raises:
        DirsnapError: On any user-facing validation or I/O error.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    _run_with_args(args, stream if stream is not None else sys.stdout)


def _build_forbidden(args: argparse.Namespace) -> tuple[str, ...] | None:
    """Combine ``-f`` prefixes and ``--preset`` prefixes.

    Returns:
        tuple[str, ...] | None: Prefixes, or ``None`` when neither option is set.

    Raises:
        InvalidInputError: If ``--preset`` value is invalid.
    """
    prefixes: list[str] = list(args.forbidden)
    if args.preset:
        from dirsnap.preset import get_preset_prefixes

        prefixes.extend(get_preset_prefixes(args.preset))
    return tuple(prefixes) if prefixes else None


def _resolve_config(args: argparse.Namespace) -> DirsnapConfig:
    """Merge the config file with CLI overrides.

    Args:
        args: Parsed CLI namespace.

    Returns:
        DirsnapConfig: Effective settings.

    Raises:
        InvalidInputError: On a bad config file or invalid option values.
    """
    file_config = load_config_file(args.config_path)
    roots = [*args.roots, *args.extra_roots]
    config = file_config.merged(
        roots=tuple(roots) if roots else None,
        forbidden=_build_forbidden(args),
        max_depth=args.max_depth,
        cache_path=args.cache_path,
        interval=args.interval,
        gitignore=args.gitignore,
        follow_symlinks=args.follow_symlinks,
        sort=args.sort,
    )
    if not config.roots and args.mode == "live":
        config = config.merged(roots=(".",))
    return config


def _print_cache(config: DirsnapConfig, stream: TextIO) -> None:
    cache_path = config.resolved_cache_path
    try:
        content = read_cache(cache_path)
    except CacheNotFoundError as exc:
        raise CacheNotFoundError(
            f"{exc}; run 'dirsnap --refresh' to build it"
        ) from exc
    stream.write(content)


def _refresh(config: DirsnapConfig) -> None:
    try:
        report = RefreshScheduler(config).refresh_once()
    except CacheWriteError as exc:
        raise CacheWriteError(f"Refresh failed: {exc}", tmp_path=exc.tmp_path) from exc
    logger.info(
        "Snapshot of %d directories written to %s",
        report.emitted,
        config.resolved_cache_path,
    )


def _run_with_args(args: argparse.Namespace, stream: TextIO) -> None:
    """Run the selected mode for parsed arguments.

    Args:
        args: Parsed CLI namespace.
        stream: Output stream for live and cached listings.

    Raises:
        DirsnapError: On any user-facing validation or I/O error.
    """
    config = _resolve_config(args)

    if args.mode == "cache":
        _print_cache(config, stream)
        return
    if args.mode == "refresh":
        _refresh(config)
        return
    if args.mode == "daemon":
        # Fail fast on a missing root list instead of logging it every cycle.
        if not config.roots:
            raise InvalidInputError("No roots given")
        RefreshScheduler(config).run_forever()
        return

    report = walk_roots(
        config.roots,
        config.forbidden,
        config.max_depth,
        StreamEmitter(stream),
        options=walk_options_for(config),
    )
    if report.skipped:
        logger.info("%d directories could not be listed", len(report.skipped))


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stderr)


def main() -> None:
    """Run the CLI entry point with process arguments.

    Parses args exactly once and streams output to stdout.
    Exits with code 1 on user-facing errors.
    """
    parser = build_parser()
    args = parser.parse_args()  # single parse
    _configure_logging(args.verbose)
    if isinstance(sys.stdout, io.TextIOWrapper):
        # Paths that are not valid UTF-8 are written back as their raw bytes.
        sys.stdout.reconfigure(errors="surrogateescape")

    try:
        _run_with_args(args, sys.stdout)
    except DirsnapError as exc:
        sys.stderr.write(f"dirsnap: {exc}\n")
        sys.exit(1)
