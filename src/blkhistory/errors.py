"""Error hierarchy for blkhistory.

Errors fall into three groups that the reconstructor treats differently:

- RecordError: one event (or one field of it) is unusable. Logged and skipped.
- TreeWriteError: one filesystem write could not be performed. Logged, the
  write is skipped and the rest of the event still applies.
- Fatal errors (WorkingRootError, CollaboratorError): the run aborts with a
  non-zero exit status.
"""

from __future__ import annotations


class BlkHistoryError(Exception):
    """Base error for all blkhistory failures.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        """Initialize BlkHistoryError.

        Args:
            message: Error description.
        """
        super().__init__(message)
        self.message = message


# ---------------------------------------------------------------------------
# Record level
# ---------------------------------------------------------------------------


class RecordError(BlkHistoryError):
    """A single event record cannot be used as-is."""


class InvalidRecordError(RecordError):
    """Raised when a relevant record misses or malforms a required field."""


class InvalidDeviceIdentityError(InvalidRecordError):
    """Raised when a device number does not have the ``major:minor`` shape."""

    def __init__(self, value: str) -> None:
        super().__init__(f"invalid device identity: {value!r}")
        self.value = value


class UnsafePathError(RecordError):
    """Raised when a field would build an unsafe path or symlink target."""

    def __init__(self, field: str, value: str) -> None:
        super().__init__(f"unsafe path field {field}: {value!r}")
        self.field = field
        self.value = value


# ---------------------------------------------------------------------------
# Write level
# ---------------------------------------------------------------------------


class TreeWriteError(BlkHistoryError):
    """A single write into the working tree was aborted."""


class PathTooLongError(TreeWriteError):
    """Raised when a constructed path exceeds the path-length budget."""

    def __init__(self, path: str, limit: int) -> None:
        super().__init__(f"path exceeds {limit} bytes: {path[:80]}...")
        self.path = path
        self.limit = limit


class ConcurrentModificationError(TreeWriteError):
    """Raised when a target file changed underneath an atomic write."""

    def __init__(self, path: str) -> None:
        super().__init__(f"file changed during write, refusing to overwrite: {path}")
        self.path = path


# ---------------------------------------------------------------------------
# Fatal
# ---------------------------------------------------------------------------


class WorkingRootError(BlkHistoryError):
    """Raised when the working root cannot be created or used."""


class CollaboratorError(BlkHistoryError):
    """An external collaborator failed.

    Attributes:
        collaborator: Name of the failing collaborator (e.g. ``lsblk``).
        returncode: Exit status of the collaborator process, if it ran.
    """

    def __init__(
        self,
        collaborator: str,
        message: str,
        returncode: int | None = None,
    ) -> None:
        """Initialize CollaboratorError.

        Args:
            collaborator: Name of the failing collaborator.
            message: Error description.
            returncode: Optional process exit status.
        """
        super().__init__(f"{collaborator}: {message}")
        self.collaborator = collaborator
        self.returncode = returncode


class EventSourceError(CollaboratorError):
    """Raised when the event source cannot be started or read."""


class TimeParseError(CollaboratorError):
    """Raised when a window boundary cannot be converted to microseconds."""


class EnumerationToolError(CollaboratorError):
    """Raised when the enumeration tool cannot be run or exits non-zero."""


class HistoryBackendError(CollaboratorError):
    """Raised when a versioned-history operation fails."""
