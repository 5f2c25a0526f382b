"""Registry of currently live block devices.

Maps a ``major:minor`` device number to the name, path and raw dependency
lists recorded by the most recent add/change event for that number. Only
live devices are present: a remove event evicts the entry, and a later add
with the same number starts a fresh one.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class RegistryEntry:
    """Live device as last seen in the event stream.

    Attributes:
        device_name: Absolute device node path (e.g. /dev/dm-0).
        device_path: Kernel device path (DEVPATH).
        holders: Raw space-separated holders list, or None.
        slaves: Raw space-separated slaves list, or None.
    """

    device_name: str
    device_path: str
    holders: str | None = None
    slaves: str | None = None

    @property
    def kernel_name(self) -> str:
        """Base name of the device node."""
        return self.device_name.rstrip("/").rsplit("/", 1)[-1]


class DeviceRegistry:
    """Device-number keyed registry owned by one reconstruction run."""

    def __init__(self) -> None:
        self._entries: dict[str, RegistryEntry] = {}

    def record(self, device_number: str, entry: RegistryEntry) -> None:
        """Insert or replace the entry for a device number."""
        # Re-insert so iteration follows the latest add/change order
        self._entries.pop(device_number, None)
        self._entries[device_number] = entry

    def evict(self, device_number: str) -> RegistryEntry | None:
        """Remove and return the entry for a device number, if any."""
        return self._entries.pop(device_number, None)

    def get(self, device_number: str) -> RegistryEntry | None:
        return self._entries.get(device_number)

    def items(self) -> Iterator[tuple[str, RegistryEntry]]:
        """Iterate over (device_number, entry) pairs of live devices."""
        return iter(list(self._entries.items()))

    def __contains__(self, device_number: object) -> bool:
        return device_number in self._entries

    def __len__(self) -> int:
        return len(self._entries)
