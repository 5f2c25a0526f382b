"""Test fixtures for blkhistory.

Provides:
- root: An empty working root under pytest's tmp_path
- registry / writer / builder: Tree components bound to that root
- make_record: Factory for raw journal records as the monitor writes them
- make_event: Factory for parsed DeviceEvents
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from blkhistory.topology.events import DeviceEvent
from blkhistory.topology.registry import DeviceRegistry
from blkhistory.topology.tree import TreeBuilder, TreeWriter

IDENTIFIER = "lsblk-monitor"

SDA_PATH = "/devices/pci0000:00/0000:00:1f.2/ata1/host0/target0:0:0/0:0:0:0/block/sda"
SDA1_PATH = f"{SDA_PATH}/sda1"
DM0_PATH = "/devices/virtual/block/dm-0"


def make_record(
    action: str = "add",
    devname: str = "/dev/sda",
    devpath: str = SDA_PATH,
    major: str = "8",
    minor: str = "0",
    devtype: str = "disk",
    timestamp: int = 1_714_557_600_000_000,
    devlinks: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build a raw journal record for a block event.

    Args:
        action: udev ACTION.
        devname: DEVNAME.
        devpath: DEVPATH.
        major: MAJOR.
        minor: MINOR.
        devtype: DEVTYPE.
        timestamp: __REALTIME_TIMESTAMP in microseconds.
        devlinks: Space-separated DEVLINKS, omitted when None.
        **extra: Additional journal fields (attributes, HOLDERS, ...).

    Returns:
        A dict shaped like one line of ``journalctl -o json``.
    """
    record: dict[str, Any] = {
        "__REALTIME_TIMESTAMP": str(timestamp),
        "SYSLOG_IDENTIFIER": IDENTIFIER,
        "SUBSYSTEM": "block",
        "ACTION": action,
        "DEVNAME": devname,
        "DEVPATH": devpath,
        "MAJOR": major,
        "MINOR": minor,
        "DEVTYPE": devtype,
    }
    if devlinks is not None:
        record["DEVLINKS"] = devlinks
    record.update(extra)
    return record


@pytest.fixture()
def root(tmp_path: Path) -> Path:
    """Return a not-yet-created working root."""
    return tmp_path / "root"


@pytest.fixture()
def registry() -> DeviceRegistry:
    return DeviceRegistry()


@pytest.fixture()
def writer(root: Path) -> TreeWriter:
    return TreeWriter(root)


@pytest.fixture()
def builder(writer: TreeWriter, registry: DeviceRegistry) -> TreeBuilder:
    return TreeBuilder(writer, registry)


@pytest.fixture(name="make_record")
def make_record_fixture() -> Callable[..., dict[str, Any]]:
    """Expose make_record to tests as a fixture."""
    return make_record


@pytest.fixture(name="make_event")
def make_event_fixture() -> Callable[..., DeviceEvent]:
    """Return a factory producing parsed DeviceEvents from record fields."""

    def factory(**kwargs: Any) -> DeviceEvent:
        event = DeviceEvent.from_journal(make_record(**kwargs), IDENTIFIER)
        assert event is not None
        return event

    return factory
