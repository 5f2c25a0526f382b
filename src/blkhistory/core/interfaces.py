"""Abstract interfaces (Protocol classes) for blkhistory.

Defines the contracts between the reconstructor and its external
collaborators using typing.Protocol. The reconstructor depends on these
protocols, never on the concrete adapters, so tests can substitute fakes.

Protocols defined:
- IEventSource
- ITimeParser
- IEnumerationTool
- IHistoryBackend
- IReconstructionStrategy
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from blkhistory.topology.events import DeviceEvent
    from blkhistory.topology.tree import ApplyReport, TreeBuilder


class IEventSource(Protocol):
    """Supplier of raw journal records in time order."""

    @property
    def prefiltered(self) -> bool:
        """True if the source already restricts records to the time window.

        The reconstructor skips its own window admission for such sources.
        """
        ...

    def records(self) -> Iterator[dict[str, Any]]:
        """Yield decoded journal records one at a time.

        Blocks until a record is available or the source closes.

        Raises:
            EventSourceError: If the source cannot be started or fails.
        """
        ...


class ITimeParser(Protocol):
    """Converter from human timestamps to microseconds since the epoch."""

    def to_microseconds(self, text: str) -> int:
        """Parse a timestamp string.

        Args:
            text: Human timestamp, e.g. ``2024-05-01 10:00`` or ``yesterday``.

        Returns:
            Microseconds since the epoch.

        Raises:
            TimeParseError: If the timestamp cannot be parsed.
        """
        ...


class IEnumerationTool(Protocol):
    """External tool that reports on the reconstructed tree."""

    def run(self, root: Path, arguments: Sequence[str]) -> int:
        """Run the tool against root with pass-through arguments.

        Args:
            root: The working root, passed as the root-directory override.
            arguments: Caller-supplied display arguments.

        Returns:
            The tool's exit status (always 0; failures raise).

        Raises:
            EnumerationToolError: If the tool cannot run or exits non-zero.
        """
        ...


class IHistoryBackend(Protocol):
    """Versioned history rooted at the working tree."""

    def init(self) -> None:
        """Start an empty history at the working root."""
        ...

    def stage_all(self) -> None:
        """Stage every change in the working tree."""
        ...

    def commit(self, subject: str, body: str, timestamp_us: int) -> None:
        """Record the staged state as one revision dated timestamp_us."""
        ...

    def tag(self, label: str) -> None:
        """Point a lightweight label at the latest revision."""
        ...


class IReconstructionStrategy(Protocol):
    """Output mode driven by the reconstructor."""

    def begin(self, builder: TreeBuilder) -> None:
        """Prepare the sink before any event is applied."""
        ...

    def after_event(self, event: DeviceEvent, ordinal: int, report: ApplyReport) -> None:
        """React to one applied event. ordinal is 1-based."""
        ...

    def finish(self, builder: TreeBuilder) -> Any:
        """Finalize the run and return a strategy-specific outcome."""
        ...
