"""blkhistory command-line entry point.

Wires the settings, the event source, the tree builder and the selected
output strategy together and runs one reconstruction:

- live mode (default): build the tree for the window, resolve holders and
  slaves, run ``lsblk --sysroot <root> [LSBLK-ARGS...]``
- history mode (--history): commit and tag the tree after every event and
  print the repository location

Exit status is 0 on success (dry runs included) and 1 on fatal errors.
"""

from __future__ import annotations

import argparse
import shutil
import sys
import tempfile
from collections.abc import Sequence
from pathlib import Path

from blkhistory import __version__
from blkhistory.adapters.enumeration import LsblkTool
from blkhistory.adapters.event_source import (
    FileEventSource,
    JournalEventSource,
    StreamEventSource,
)
from blkhistory.adapters.git_history import GitHistory
from blkhistory.adapters.time_parser import DateTimeParser
from blkhistory.core.interfaces import IEventSource, IReconstructionStrategy
from blkhistory.errors import BlkHistoryError
from blkhistory.observability import configure_logging, get_logger
from blkhistory.settings import Settings
from blkhistory.topology.reconstructor import TopologyReconstructor
from blkhistory.topology.registry import DeviceRegistry
from blkhistory.topology.strategies import HistoryStrategy, HistorySummary, LiveTreeStrategy
from blkhistory.topology.tree import TreeBuilder, TreeWriter

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="blkhistory",
        description="Reconstruct past block device topology from journal events",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--root", type=Path, help="Working root for the reconstructed tree")
    parser.add_argument("--since", help="Window start (inclusive)")
    parser.add_argument("--until", help="Window end (inclusive)")

    source = parser.add_mutually_exclusive_group()
    source.add_argument("--file", type=Path, help="Read a JSON-lines journal export")
    source.add_argument("--stdin", action="store_true", help="Read JSON lines from stdin")

    parser.add_argument("--history", action="store_true", help="Commit the tree after every event")
    parser.add_argument("--extra", action="store_true", help="Capture supplementary EXTRA/ fields")
    parser.add_argument("--dry-run", action="store_true", help="Report actions without performing them")
    parser.add_argument("--identifier", help="SYSLOG_IDENTIFIER of monitor records")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="More log output")
    parser.add_argument("lsblk_args", nargs="*", metavar="LSBLK-ARGS", help="Arguments for lsblk")
    return parser


def _make_source(
    args: argparse.Namespace,
    settings: Settings,
    identifier: str,
    since_us: int | None,
    until_us: int | None,
) -> IEventSource:
    if args.file is not None:
        return FileEventSource(args.file)
    if args.stdin:
        return StreamEventSource()
    return JournalEventSource(
        identifier=identifier,
        since_us=since_us,
        until_us=until_us,
        binary=settings.journalctl_binary,
    )


def run(args: argparse.Namespace, settings: Settings) -> int:
    """Execute one reconstruction described by parsed arguments.

    Raises:
        BlkHistoryError: On fatal errors.
    """
    identifier = args.identifier or settings.syslog_identifier
    dry_run = args.dry_run or settings.dry_run

    parser = DateTimeParser(settings.date_binary)
    since_us = parser.to_microseconds(args.since) if args.since else None
    until_us = parser.to_microseconds(args.until) if args.until else None

    configured: Path | None = args.root or settings.working_root
    temporary = configured is None and not dry_run
    if configured is not None:
        root = configured
    elif dry_run:
        # Never created: a dry run only logs the paths it would use
        root = Path(tempfile.gettempdir()) / "blkhistory-dry-run"
    else:
        root = Path(tempfile.mkdtemp(prefix="blkhistory-"))

    extra_capture = args.history or args.extra or settings.extra_capture
    writer = TreeWriter(root, path_max=settings.path_max, dry_run=dry_run)
    builder = TreeBuilder(writer, DeviceRegistry(), extra_capture=extra_capture)

    strategy: IReconstructionStrategy
    if args.history:
        strategy = HistoryStrategy(
            GitHistory(
                root,
                binary=settings.git_binary,
                author_name=settings.git_author_name,
                author_email=settings.git_author_email,
                dry_run=dry_run,
            )
        )
    else:
        # argparse already consumed the leading "--" separator
        strategy = LiveTreeStrategy(
            LsblkTool(settings.lsblk_binary, dry_run=dry_run), args.lsblk_args
        )

    reconstructor = TopologyReconstructor(
        builder,
        strategy,
        identifier=identifier,
        since_us=since_us,
        until_us=until_us,
    )
    source = _make_source(args, settings, identifier, since_us, until_us)
    try:
        result = reconstructor.run(source)
    finally:
        # A live tree in a temporary root is only needed while lsblk runs
        if temporary and not args.history:
            shutil.rmtree(root, ignore_errors=True)

    if isinstance(result.outcome, HistorySummary):
        print(f"history: {result.outcome.root} ({result.outcome.commits} commits)")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, configure logging and run.

    Returns:
        Process exit status.
    """
    args = build_parser().parse_args(argv)
    settings = Settings()

    level = settings.log_level
    if args.verbose == 1 or (args.dry_run and args.verbose == 0):
        level = "info"
    elif args.verbose >= 2:
        level = "debug"
    configure_logging(level, settings.log_json)

    try:
        return run(args, settings)
    except BlkHistoryError as exc:
        logger.debug("Run aborted", error_type=type(exc).__name__)
        print(f"error: {exc.message}", file=sys.stderr)
        return 1


def cli() -> None:
    sys.exit(main())
