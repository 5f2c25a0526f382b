"""Historical block topology reconstructor.

Pulls journal records from an event source one at a time, admits those
inside the time window, applies each to the working tree and lets the
selected strategy react. When the stream ends (or the first record past
the window arrives) the strategy finalizes the run.

State machine::

    INITIALIZING -> ADMITTING -> INGESTING -> FINALIZING
                 \\______________/

ADMITTING discards records before the start boundary. It is skipped when
there is no start boundary or when the source already filtered the window.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from blkhistory.core.interfaces import IEventSource, IReconstructionStrategy
from blkhistory.errors import RecordError, TreeWriteError, WorkingRootError
from blkhistory.observability import get_logger
from blkhistory.topology.events import DeviceEvent
from blkhistory.topology.tree import TreeBuilder

logger = get_logger(__name__)


class ReconstructionState(str, enum.Enum):
    """Phase of a reconstruction run."""

    INITIALIZING = "initializing"
    ADMITTING = "admitting"
    INGESTING = "ingesting"
    FINALIZING = "finalizing"


@dataclass
class ReconstructionResult:
    """Summary of a finished run.

    Attributes:
        root: The working root.
        applied: Events applied to the tree.
        ignored: Records that were not monitor block events.
        rejected: Malformed records that were skipped.
        discarded: Records outside the time window.
        outcome: Strategy result (ResolutionReport or HistorySummary).
    """

    root: Path
    applied: int = 0
    ignored: int = 0
    rejected: int = 0
    discarded: int = 0
    outcome: Any = None


class TopologyReconstructor:
    """Drives one reconstruction run.

    Args:
        builder: Tree builder for the working root; owns the registry.
        strategy: Live-tree or history output strategy.
        identifier: SYSLOG_IDENTIFIER of monitor records.
        since_us: Inclusive window start in microseconds, or None.
        until_us: Inclusive window end in microseconds, or None.
    """

    def __init__(
        self,
        builder: TreeBuilder,
        strategy: IReconstructionStrategy,
        identifier: str,
        since_us: int | None = None,
        until_us: int | None = None,
    ) -> None:
        self._builder = builder
        self._strategy = strategy
        self._identifier = identifier
        self._since_us = since_us
        self._until_us = until_us
        self.state = ReconstructionState.INITIALIZING

    def _prepare_root(self) -> None:
        writer = self._builder.writer
        try:
            for directory in (writer.root, writer.dev_dir, writer.sys_dir / "block",
                              writer.sys_dir / "dev" / "block"):
                writer.ensure_directory(directory)
        except (TreeWriteError, OSError) as exc:
            raise WorkingRootError(f"cannot create working root {writer.root}: {exc}") from exc

    def run(self, source: IEventSource) -> ReconstructionResult:
        """Ingest the source and finalize the run.

        Malformed records are logged and skipped. Fatal errors propagate.

        Args:
            source: Supplier of raw journal records in time order.

        Returns:
            ReconstructionResult with counters and the strategy outcome.

        Raises:
            WorkingRootError: If the working root cannot be created.
            CollaboratorError: If an external collaborator fails.
        """
        self.state = ReconstructionState.INITIALIZING
        self._prepare_root()
        result = ReconstructionResult(root=self._builder.writer.root)
        self._strategy.begin(self._builder)

        filter_in_process = not source.prefiltered
        if filter_in_process and self._since_us is not None:
            self.state = ReconstructionState.ADMITTING
        else:
            self.state = ReconstructionState.INGESTING
        logger.info(
            "Reconstruction started",
            root=str(result.root),
            state=self.state.value,
            since_us=self._since_us,
            until_us=self._until_us,
        )

        for raw in source.records():
            try:
                event = DeviceEvent.from_journal(raw, self._identifier)
            except RecordError as exc:
                logger.warning("Skipping malformed record", reason=exc.message)
                result.rejected += 1
                continue
            if event is None:
                result.ignored += 1
                continue

            if filter_in_process:
                if self.state is ReconstructionState.ADMITTING:
                    if event.timestamp < self._since_us:  # type: ignore[operator]
                        result.discarded += 1
                        continue
                    self.state = ReconstructionState.INGESTING
                if self._until_us is not None and event.timestamp > self._until_us:
                    result.discarded += 1
                    break

            result.applied += 1
            report = self._builder.apply(event)
            self._strategy.after_event(event, result.applied, report)

        self.state = ReconstructionState.FINALIZING
        result.outcome = self._strategy.finish(self._builder)
        logger.info(
            "Reconstruction finished",
            applied=result.applied,
            ignored=result.ignored,
            rejected=result.rejected,
            discarded=result.discarded,
        )
        return result
