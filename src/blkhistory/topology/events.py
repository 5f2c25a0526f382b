"""Block device event schema.

Each journal record written by the block-event monitor is parsed into an
immutable DeviceEvent. Parsing is where record relevance is decided
(subsystem, identifier, action) and where the fields needed to anchor the
device in the tree (device number, node name, device path) are validated.
Everything else is carried opaquely as cleaned string attributes.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from blkhistory.errors import InvalidRecordError
from blkhistory.observability import get_logger
from blkhistory.topology import fields
from blkhistory.topology.sanitizer import UsageClass, check_device_number, sanitize

logger = get_logger(__name__)


def utc_datetime(timestamp_us: int) -> datetime:
    """Convert microseconds since the epoch to an aware UTC datetime."""
    seconds, micros = divmod(timestamp_us, 1_000_000)
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=micros)


class Action(str, enum.Enum):
    """udev action of a block event."""

    ADD = "add"
    CHANGE = "change"
    REMOVE = "remove"


class DeviceType(str, enum.Enum):
    """Block device type; selects which metadata files are written."""

    DISK = "disk"
    PARTITION = "partition"
    OTHER = "other"


def _field_text(value: Any) -> str | None:
    """Return the text of a journal JSON field value.

    journalctl emits a plain string for ordinary fields, an array of
    integers for binary (non-UTF-8-safe) fields and an array of values for
    fields that occur more than once in a record. For repeated fields the
    last value wins.

    Args:
        value: The decoded JSON value.

    Returns:
        The field text, or None if it is absent or not decodable.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list) and value:
        if all(isinstance(item, int) for item in value):
            try:
                return bytes(value).decode("utf-8")
            except (ValueError, UnicodeDecodeError):
                return None
        return _field_text(value[-1])
    return None


class DeviceEvent(BaseModel):
    """Immutable record of one block device change.

    Attributes:
        action: add, change or remove.
        device_number: ``major:minor`` string, validated.
        device_name: Absolute device node path (e.g. /dev/sda), validated.
        device_path: Kernel device path (DEVPATH), validated.
        device_links: Alias paths in record order. Not validated here;
            the tree builder checks each one on its own.
        device_type: disk, partition or other.
        attributes: Captured field name to cleaned, non-empty value.
        holders: Raw space-separated device numbers holding this device.
        slaves: Raw space-separated device numbers this device holds.
        timestamp: Source time in microseconds since the epoch.
    """

    model_config = ConfigDict(frozen=True)

    action: Action = Field(..., description="udev action")
    device_number: str = Field(..., description="major:minor device number")
    device_name: str = Field(..., description="Absolute device node path")
    device_path: str = Field(..., description="Kernel device path below /sys")
    device_links: tuple[str, ...] = Field(default=(), description="Alias node paths")
    device_type: DeviceType = Field(default=DeviceType.OTHER, description="Device type")
    attributes: dict[str, str] = Field(default_factory=dict, description="Captured attributes")
    holders: str | None = Field(default=None, description="Raw holders list")
    slaves: str | None = Field(default=None, description="Raw slaves list")
    timestamp: int = Field(..., description="Source time, microseconds since the epoch")

    @property
    def kernel_name(self) -> str:
        """Base name of the device node, e.g. ``sda1``."""
        return self.device_name.rstrip("/").rsplit("/", 1)[-1]

    @property
    def is_device_mapper(self) -> bool:
        """True for mapped devices (``dm-N``)."""
        name = self.kernel_name
        return name.startswith("dm-") and name[3:].isdigit()

    @property
    def timestamp_datetime(self) -> datetime:
        """Source time as an aware UTC datetime."""
        return utc_datetime(self.timestamp)

    @classmethod
    def from_journal(cls, raw: dict[str, Any], identifier: str) -> DeviceEvent | None:
        """Parse one journal JSON record.

        Args:
            raw: The decoded JSON object of one journal entry.
            identifier: Expected SYSLOG_IDENTIFIER of monitor records.

        Returns:
            The parsed event, or None if the record is not a block event
            from the monitor or carries an unrecognized action.

        Raises:
            InvalidRecordError: If a relevant record has a malformed device
                identity or no usable timestamp.
            UnsafePathError: If DEVNAME is not a safe path below /dev/ or
                DEVPATH is not a safe path below /devices/.
        """
        if _field_text(raw.get(fields.FIELD_SUBSYSTEM)) != fields.BLOCK_SUBSYSTEM:
            return None
        if _field_text(raw.get(fields.FIELD_IDENTIFIER)) != identifier:
            return None

        raw_action = (_field_text(raw.get(fields.FIELD_ACTION)) or "").strip().lower()
        try:
            action = Action(raw_action)
        except ValueError:
            logger.warning("Dropping record with unrecognized action", action=raw_action)
            return None

        major = (_field_text(raw.get(fields.FIELD_MAJOR)) or "").strip()
        minor = (_field_text(raw.get(fields.FIELD_MINOR)) or "").strip()
        device_number = check_device_number(f"{major}:{minor}")

        device_name = _field_text(raw.get(fields.FIELD_DEVNAME))
        if not device_name:
            raise InvalidRecordError(f"record for {device_number} has no DEVNAME")
        sanitize(device_name, UsageClass.LINK, fields.FIELD_DEVNAME)

        device_path = _field_text(raw.get(fields.FIELD_DEVPATH))
        if not device_path:
            raise InvalidRecordError(f"record for {device_name} has no DEVPATH")
        sanitize(device_path, UsageClass.PATH, fields.FIELD_DEVPATH)

        raw_timestamp = (_field_text(raw.get(fields.FIELD_TIMESTAMP)) or "").strip()
        if not raw_timestamp.isdigit():
            raise InvalidRecordError(
                f"record for {device_name} has no usable timestamp: {raw_timestamp!r}"
            )

        links = _field_text(raw.get(fields.FIELD_DEVLINKS)) or ""

        raw_type = (_field_text(raw.get(fields.FIELD_DEVTYPE)) or "").strip().lower()
        device_type = (
            DeviceType(raw_type)
            if raw_type in (DeviceType.DISK.value, DeviceType.PARTITION.value)
            else DeviceType.OTHER
        )

        attributes: dict[str, str] = {}
        for name in fields.ATTRIBUTE_FIELDS:
            text = _field_text(raw.get(name))
            if text is None:
                continue
            cleaned = sanitize(text, UsageClass.VALUE, name)
            if cleaned is not None:
                attributes[name] = cleaned

        holders = _field_text(raw.get(fields.FIELD_HOLDERS))
        slaves = _field_text(raw.get(fields.FIELD_SLAVES))

        return cls(
            action=action,
            device_number=device_number,
            device_name=device_name,
            device_path=device_path,
            device_links=tuple(links.split()),
            device_type=device_type,
            attributes=attributes,
            holders=sanitize(holders, UsageClass.VALUE, fields.FIELD_HOLDERS) if holders else None,
            slaves=sanitize(slaves, UsageClass.VALUE, fields.FIELD_SLAVES) if slaves else None,
            timestamp=int(raw_timestamp),
        )
