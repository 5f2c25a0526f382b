"""Validation gate for untrusted journal fields.

Journal records are written by a monitor process but can be forged by any
local program that logs with the same identifier, so every string that
ends up in a path, a symlink target or a file body passes through here
first. The sanitizer performs no I/O; it only licenses or denies writes.

Usage classes:

- PATH: a kernel device path (DEVPATH), placed below ``sys/``. Must name
  something under ``/devices/``.
- LINK: a device node or alias (DEVNAME, DEVLINKS), placed below ``dev/``
  and used as a symlink source or target. Must name something under
  ``/dev/``.
- VALUE: an attribute written into a metadata file. Only framing is
  stripped.
"""

from __future__ import annotations

import enum
import posixpath
import re

from blkhistory.errors import InvalidDeviceIdentityError, UnsafePathError

_SAFE_PATH_RE = re.compile(r"^[-A-Za-z0-9#+.:=@_/\\]+$")
_DEVICE_NUMBER_RE = re.compile(r"^\d+:\d+$")
_COMPONENT_SPLIT_RE = re.compile(r"[/\\]")

_NODE_PREFIX = "/dev/"
_DEVPATH_PREFIX = "/devices/"


class UsageClass(str, enum.Enum):
    """How a sanitized string is going to be used."""

    PATH = "path"
    LINK = "link"
    VALUE = "value"


def is_traversal(value: str) -> bool:
    """Return True if any path component of value is ``..``."""
    return any(part == ".." for part in _COMPONENT_SPLIT_RE.split(value))


def check_path(value: str, field: str = "path") -> str:
    """Validate the character set of a path-like string.

    Args:
        value: The raw field value.
        field: Field name, used in the error.

    Returns:
        The value unchanged.

    Raises:
        UnsafePathError: If the value contains characters outside the
            allowed set or a ``..`` component.
    """
    if not _SAFE_PATH_RE.match(value) or is_traversal(value):
        raise UnsafePathError(field, value)
    return value


def _check_below(value: str, prefix: str, field: str) -> str:
    # The normalized form must keep a non-empty remainder below prefix, so
    # "/dev/", "/dev/." or "/devices//" never map onto a shared directory.
    check_path(value, field)
    normalized = posixpath.normpath(value)
    if not normalized.startswith(prefix) or not normalized[len(prefix):].strip("/"):
        raise UnsafePathError(field, value)
    return value


def check_device_node(value: str, field: str = "DEVNAME") -> str:
    """Validate a device node or alias path (``/dev/<name>``).

    Raises:
        UnsafePathError: If value is unsafe or not below ``/dev/``.
    """
    return _check_below(value, _NODE_PREFIX, field)


def check_device_path(value: str, field: str = "DEVPATH") -> str:
    """Validate a kernel device path (``/devices/<...>``).

    Raises:
        UnsafePathError: If value is unsafe or not below ``/devices/``.
    """
    return _check_below(value, _DEVPATH_PREFIX, field)


def check_device_number(value: str) -> str:
    """Validate a ``major:minor`` device number.

    Raises:
        InvalidDeviceIdentityError: If value is not two decimal numbers
            joined by a colon.
    """
    if not _DEVICE_NUMBER_RE.match(value):
        raise InvalidDeviceIdentityError(value)
    return value


def clean_value(value: str) -> str | None:
    """Strip whitespace and one layer of matching quotes from a value.

    An empty result means "unknown" and suppresses the file write
    entirely, so None is returned instead of an empty string.
    """
    cleaned = value.strip()
    if len(cleaned) >= 2 and cleaned[0] == cleaned[-1] and cleaned[0] in "'\"":
        cleaned = cleaned[1:-1].strip()
    return cleaned or None


def sanitize(value: str, usage: UsageClass, field: str = "value") -> str | None:
    """Sanitize value for the given usage class.

    Args:
        value: The raw field value.
        usage: PATH and LINK are validated strictly, VALUE is cleaned.
        field: Field name, used in errors.

    Returns:
        The value for PATH and LINK, the cleaned string for VALUE, or None
        for an empty VALUE.

    Raises:
        UnsafePathError: For a PATH or LINK value that fails validation.
    """
    if usage is UsageClass.VALUE:
        return clean_value(value)
    if usage is UsageClass.PATH:
        return check_device_path(value, field)
    return check_device_node(value, field)


def split_references(raw: str | None) -> list[str]:
    """Split a space-separated holders/slaves list into items.

    Items are not validated here; the resolver checks each one on its own
    so that a single bad reference does not drop the rest.
    """
    if not raw:
        return []
    return raw.split()
