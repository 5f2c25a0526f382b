"""Output strategies for a reconstruction run.

Both strategies consume the same per-event TreeBuilder.apply step and
differ only in what happens around it:

- LiveTreeStrategy keeps one tree, resolves holder/slave links once the
  window has been ingested and hands the tree to the enumeration tool.
- HistoryStrategy commits and tags the tree after every event. Holder/slave
  links are not resolved in this mode.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from blkhistory.core.interfaces import IEnumerationTool, IHistoryBackend
from blkhistory.observability import get_logger
from blkhistory.topology.events import DeviceEvent, utc_datetime
from blkhistory.topology.resolver import DependencyResolver, ResolutionReport
from blkhistory.topology.tree import ApplyReport, TreeBuilder

logger = get_logger(__name__)


def format_timestamp(timestamp_us: int) -> str:
    """Render a source timestamp for commit bodies, e.g.
    ``2024-05-01 10:00:00.123456 UTC``."""
    return utc_datetime(timestamp_us).strftime("%Y-%m-%d %H:%M:%S.%f UTC")


def history_label(timestamp_us: int) -> str:
    """Return the tag name for a source timestamp, at one-second resolution.

    The label depends on the timestamp only, so the state as of time T can
    be checked out as ``history_label(T)`` without reading commit messages.
    """
    return utc_datetime(timestamp_us).strftime("%Y%m%d-%H%M%S")


def commit_subject(event: DeviceEvent, ordinal: int) -> str:
    return f"{event.action.value.upper()} {event.device_name} (event {ordinal})"


class LiveTreeStrategy:
    """Single reconstructed tree, resolved and enumerated at the end.

    Args:
        tool: Enumeration tool to run on the finished tree, or None to
            only build the tree.
        arguments: Pass-through display arguments for the tool.
    """

    def __init__(
        self,
        tool: IEnumerationTool | None = None,
        arguments: Sequence[str] = (),
    ) -> None:
        self._tool = tool
        self._arguments = list(arguments)

    def begin(self, builder: TreeBuilder) -> None:
        return None

    def after_event(self, event: DeviceEvent, ordinal: int, report: ApplyReport) -> None:
        return None

    def finish(self, builder: TreeBuilder) -> ResolutionReport:
        """Resolve dependencies, then run the enumeration tool if configured.

        Raises:
            EnumerationToolError: If the tool fails.
        """
        resolution = DependencyResolver(builder.writer, builder.registry).resolve()
        if self._tool is not None:
            self._tool.run(builder.writer.root, self._arguments)
        return resolution


@dataclass
class HistorySummary:
    """Outcome of a history export.

    Attributes:
        root: Location of the history container.
        commits: Number of commits written.
        labels: Tag names in commit order (repeats when several events
            share one second).
    """

    root: Path
    commits: int = 0
    labels: list[str] = field(default_factory=list)


class HistoryStrategy:
    """One commit and one timestamp tag per applied event.

    Args:
        backend: The versioned history rooted at the working tree.
    """

    def __init__(self, backend: IHistoryBackend) -> None:
        self._backend = backend
        self._summary: HistorySummary | None = None

    def begin(self, builder: TreeBuilder) -> None:
        """Start an empty history before the first event.

        Raises:
            HistoryBackendError: If the repository cannot be created.
        """
        self._backend.init()
        self._summary = HistorySummary(root=builder.writer.root)

    def after_event(self, event: DeviceEvent, ordinal: int, report: ApplyReport) -> None:
        """Commit the tree as of this event, even if nothing changed.

        Raises:
            HistoryBackendError: If staging, committing or tagging fails.
        """
        if self._summary is None:
            raise RuntimeError("HistoryStrategy.begin() was not called")
        label = history_label(event.timestamp)
        self._backend.stage_all()
        self._backend.commit(
            commit_subject(event, ordinal),
            format_timestamp(event.timestamp),
            event.timestamp,
        )
        self._backend.tag(label)
        self._summary.commits += 1
        self._summary.labels.append(label)
        logger.debug("Committed event", ordinal=ordinal, label=label, changed=len(report.changed))

    def finish(self, builder: TreeBuilder) -> HistorySummary:
        if self._summary is None:
            raise RuntimeError("HistoryStrategy.begin() was not called")
        logger.info(
            "History export complete",
            root=str(self._summary.root),
            commits=self._summary.commits,
        )
        return self._summary
