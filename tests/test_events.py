"""Tests for DeviceEvent parsing from journal records."""

from __future__ import annotations

import pytest

from blkhistory.errors import InvalidDeviceIdentityError, InvalidRecordError, UnsafePathError
from blkhistory.topology.events import Action, DeviceEvent, DeviceType

IDENTIFIER = "lsblk-monitor"


def test_parses_add_disk_record(make_record) -> None:
    record = make_record(
        devlinks="/dev/disk/by-id/ata-VBOX_HARDDISK /dev/disk/by-path/pci-0000:00:1f.2-ata-1",
        DEVICE_MODEL="VBOX HARDDISK   ",
        QUEUE_ROTATIONAL="1",
        HOLDERS="253:0",
    )
    event = DeviceEvent.from_journal(record, IDENTIFIER)

    assert event is not None
    assert event.action is Action.ADD
    assert event.device_number == "8:0"
    assert event.device_name == "/dev/sda"
    assert event.device_type is DeviceType.DISK
    assert event.kernel_name == "sda"
    assert event.device_links == (
        "/dev/disk/by-id/ata-VBOX_HARDDISK",
        "/dev/disk/by-path/pci-0000:00:1f.2-ata-1",
    )
    assert event.attributes == {"DEVICE_MODEL": "VBOX HARDDISK", "QUEUE_ROTATIONAL": "1"}
    assert event.holders == "253:0"
    assert event.slaves is None
    assert event.timestamp == 1_714_557_600_000_000


def test_event_is_immutable(make_event) -> None:
    event = make_event()
    with pytest.raises(Exception):
        event.device_name = "/dev/sdb"  # type: ignore[misc]


def test_timestamp_datetime_is_utc(make_event) -> None:
    event = make_event(timestamp=1_714_557_600_123_456)
    moment = event.timestamp_datetime
    assert (moment.year, moment.month, moment.day, moment.hour) == (2024, 5, 1, 10)
    assert moment.microsecond == 123_456
    assert moment.utcoffset().total_seconds() == 0


@pytest.mark.parametrize(
    ("field", "value"),
    [("SUBSYSTEM", "net"), ("SYSLOG_IDENTIFIER", "systemd-udevd")],
)
def test_irrelevant_records_are_ignored(make_record, field: str, value: str) -> None:
    record = make_record()
    record[field] = value
    assert DeviceEvent.from_journal(record, IDENTIFIER) is None


def test_unrecognized_action_is_dropped(make_record) -> None:
    assert DeviceEvent.from_journal(make_record(action="bind"), IDENTIFIER) is None


def test_action_is_case_insensitive(make_record) -> None:
    event = DeviceEvent.from_journal(make_record(action="REMOVE"), IDENTIFIER)
    assert event is not None
    assert event.action is Action.REMOVE


def test_invalid_device_identity_rejects_record(make_record) -> None:
    with pytest.raises(InvalidDeviceIdentityError):
        DeviceEvent.from_journal(make_record(major="eight"), IDENTIFIER)


def test_unsafe_devname_rejects_record(make_record) -> None:
    with pytest.raises(UnsafePathError):
        DeviceEvent.from_journal(make_record(devname="/dev/../etc/shadow"), IDENTIFIER)


def test_unsafe_devpath_rejects_record(make_record) -> None:
    with pytest.raises(UnsafePathError):
        DeviceEvent.from_journal(make_record(devpath="/devices/../../tmp"), IDENTIFIER)


@pytest.mark.parametrize("devname", ["sda", "/", "/dev", "/dev/", "/dev/.", "/dev//", "/tmp/sda"])
def test_devname_outside_dev_rejects_record(make_record, devname: str) -> None:
    with pytest.raises(UnsafePathError):
        DeviceEvent.from_journal(make_record(devname=devname), IDENTIFIER)


@pytest.mark.parametrize("devpath", ["/", "/devices", "/devices/", "/devices/./", "/sys/block/sda", "block/sda"])
def test_devpath_outside_devices_rejects_record(make_record, devpath: str) -> None:
    with pytest.raises(UnsafePathError):
        DeviceEvent.from_journal(make_record(devpath=devpath), IDENTIFIER)


def test_missing_timestamp_rejects_record(make_record) -> None:
    record = make_record()
    del record["__REALTIME_TIMESTAMP"]
    with pytest.raises(InvalidRecordError):
        DeviceEvent.from_journal(record, IDENTIFIER)


def test_unknown_devtype_is_other(make_record) -> None:
    event = DeviceEvent.from_journal(make_record(devtype="loop"), IDENTIFIER)
    assert event is not None
    assert event.device_type is DeviceType.OTHER


def test_empty_attribute_values_are_absent(make_record) -> None:
    event = DeviceEvent.from_journal(
        make_record(DEVICE_SERIAL="  ", DEVICE_VENDOR='""', DEVICE_MODEL="VBOX"),
        IDENTIFIER,
    )
    assert event is not None
    assert event.attributes == {"DEVICE_MODEL": "VBOX"}


def test_repeated_and_binary_journal_fields(make_record) -> None:
    record = make_record(
        DEVICE_MODEL=["OLD", "NEW"],
        DEVICE_VENDOR=list(b"ATA     "),
        DEVICE_SERIAL=[0xFF, 0xFE],
    )
    event = DeviceEvent.from_journal(record, IDENTIFIER)
    assert event is not None
    assert event.attributes["DEVICE_MODEL"] == "NEW"
    assert event.attributes["DEVICE_VENDOR"] == "ATA"
    assert "DEVICE_SERIAL" not in event.attributes


def test_device_mapper_detection(make_event) -> None:
    assert make_event(devname="/dev/dm-0", devpath="/devices/virtual/block/dm-0").is_device_mapper
    assert not make_event(devname="/dev/dm-x", devpath="/devices/virtual/block/dm-x").is_device_mapper
    assert not make_event().is_device_mapper
