"""Block topology reconstruction.

Turns a time-ordered stream of block device events into a synthetic
/dev + /sys tree, resolving holder/slave relationships once the window has
been ingested, or into a commit-per-event history of that tree.
"""

from __future__ import annotations

from blkhistory.topology.events import Action, DeviceEvent, DeviceType
from blkhistory.topology.reconstructor import (
    ReconstructionResult,
    ReconstructionState,
    TopologyReconstructor,
)
from blkhistory.topology.registry import DeviceRegistry, RegistryEntry
from blkhistory.topology.resolver import DependencyResolver, ResolutionReport
from blkhistory.topology.strategies import HistoryStrategy, HistorySummary, LiveTreeStrategy
from blkhistory.topology.tree import ApplyReport, TreeBuilder, TreeWriter

__all__ = [
    "Action",
    "ApplyReport",
    "DependencyResolver",
    "DeviceEvent",
    "DeviceRegistry",
    "DeviceType",
    "HistoryStrategy",
    "HistorySummary",
    "LiveTreeStrategy",
    "ReconstructionResult",
    "ReconstructionState",
    "RegistryEntry",
    "ResolutionReport",
    "TopologyReconstructor",
    "TreeBuilder",
    "TreeWriter",
]
