"""Tests for the field sanitizer."""

from __future__ import annotations

import pytest

from blkhistory.errors import InvalidDeviceIdentityError, UnsafePathError
from blkhistory.topology.sanitizer import (
    UsageClass,
    check_device_node,
    check_device_number,
    check_device_path,
    check_path,
    clean_value,
    is_traversal,
    sanitize,
    split_references,
)


@pytest.mark.parametrize(
    "value",
    [
        "/dev/sda",
        "/dev/disk/by-id/ata-VBOX_HARDDISK_VB1234-5678",
        "/dev/disk/by-path/pci-0000:00:1f.2-ata-1.0-part1",
        "/dev/disk/by-label/my\\x20label",
        "/dev/mapper/vg0-lv_root",
        "/devices/virtual/block/dm-0",
    ],
)
def test_check_path_accepts_device_paths(value: str) -> None:
    assert check_path(value) == value


@pytest.mark.parametrize(
    "value",
    [
        "../etc/passwd",
        "/dev/disk/../../etc/passwd",
        "/dev/..",
        "..",
        "/dev/disk\\..\\x",
        "/dev/sda b",
        "/dev/sda;rm",
        "/dev/$(id)",
        "",
    ],
)
def test_check_path_rejects_unsafe_values(value: str) -> None:
    with pytest.raises(UnsafePathError):
        check_path(value, "DEVLINKS")


def test_double_dots_inside_a_name_are_not_traversal() -> None:
    assert not is_traversal("/dev/disk/by-label/a..b")
    assert is_traversal("a/../b")


def test_check_device_number() -> None:
    assert check_device_number("259:3") == "259:3"
    for bad in ("8", "8:", ":0", "8:0:1", "a:b", " 8:0", "-1:0"):
        with pytest.raises(InvalidDeviceIdentityError):
            check_device_number(bad)


def test_clean_value_strips_framing() -> None:
    assert clean_value("  VBOX HARDDISK  ") == "VBOX HARDDISK"
    assert clean_value('"mq-deadline"') == "mq-deadline"
    assert clean_value("' quoted '") == "quoted"


def test_clean_value_empty_means_unknown() -> None:
    assert clean_value("") is None
    assert clean_value("   ") is None
    assert clean_value('""') is None


def test_device_nodes_must_name_something_below_dev() -> None:
    assert check_device_node("/dev/mapper/vg0-root") == "/dev/mapper/vg0-root"
    assert check_device_node("/dev/sda/") == "/dev/sda/"
    for bad in ("/", "/dev", "/dev/", "/dev/.", "/dev/.//", "/devices/sda", "/etc/dev/sda", "dev/sda"):
        with pytest.raises(UnsafePathError):
            check_device_node(bad)


def test_device_paths_must_name_something_below_devices() -> None:
    assert check_device_path("/devices/virtual/block/dm-0") == "/devices/virtual/block/dm-0"
    for bad in ("/", "/devices", "/devices/", "/devices/.", "/dev/sda", "/sys/devices/x"):
        with pytest.raises(UnsafePathError):
            check_device_path(bad)


def test_sanitize_dispatches_on_usage_class() -> None:
    assert sanitize(" 512 ", UsageClass.VALUE) == "512"
    assert sanitize("  ", UsageClass.VALUE) is None
    assert sanitize("/devices/virtual/block/sda", UsageClass.PATH) == "/devices/virtual/block/sda"
    assert sanitize("/dev/disk/by-id/a", UsageClass.LINK) == "/dev/disk/by-id/a"
    with pytest.raises(UnsafePathError):
        sanitize("/dev/sda", UsageClass.PATH, "DEVPATH")
    with pytest.raises(UnsafePathError):
        sanitize("../sda", UsageClass.LINK, "DEVLINKS")


def test_split_references() -> None:
    assert split_references("8:1  253:0") == ["8:1", "253:0"]
    assert split_references(None) == []
    assert split_references("") == []
