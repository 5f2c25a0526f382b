"""Synthetic /dev and /sys tree for one point in time.

TreeWriter owns the filesystem primitives (idempotent directories, atomic
file writes, self-healing relative symlinks, tolerant removal) and enforces
the path-length budget and dry-run mode. TreeBuilder applies one validated
DeviceEvent at a time on top of those primitives and keeps the device
registry in step with the tree.

Layout under the working root::

    dev/<node>                       placeholder file per device node
    dev/<alias>                      symlink to the node
    sys/<DEVPATH>/...                metadata files (see fields.py)
    sys/block/<name>                 symlink to the metadata dir (disks)
    sys/dev/block/<major:minor>      symlink to the metadata dir
"""

from __future__ import annotations

import errno
import os
import shutil
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from blkhistory.errors import (
    BlkHistoryError,
    ConcurrentModificationError,
    PathTooLongError,
    RecordError,
    TreeWriteError,
    WorkingRootError,
)
from blkhistory.observability import get_logger
from blkhistory.topology import fields
from blkhistory.topology.events import Action, DeviceEvent, DeviceType
from blkhistory.topology.registry import DeviceRegistry, RegistryEntry
from blkhistory.topology.sanitizer import UsageClass, sanitize

logger = get_logger(__name__)

# Relative metadata files the builder manages; anything else in a metadata
# directory (holders/, slaves/, child devices) is left alone on add/change.
_MANAGED_FILES: frozenset[str] = frozenset(
    {
        *fields.GENERIC_FILES.values(),
        *fields.PARTITION_FILES.values(),
        *fields.DISK_FILES.values(),
        *fields.EXTRA_FILES.values(),
        *fields.DM_EXTRA_FILES.values(),
    }
)

# The whole working root is unusable, not just the path being written
_FATAL_ERRNOS: frozenset[int] = frozenset({errno.ENOSPC, errno.EROFS, errno.EDQUOT})


def _file_identity(path: Path) -> tuple[int, int, int] | None:
    """Return (inode, size, mtime_ns) of path without following symlinks."""
    try:
        st = os.lstat(path)
    except FileNotFoundError:
        return None
    return (st.st_ino, st.st_size, st.st_mtime_ns)


def _write_failure(action: str, path: Path, exc: OSError) -> BlkHistoryError:
    """Map an OSError from a tree primitive to the error the caller handles.

    Errors tied to one path (name too long, permission, type clash) only
    abort that write. A full or read-only filesystem makes the whole
    working root unusable.
    """
    if exc.errno in _FATAL_ERRNOS:
        return WorkingRootError(f"cannot {action} {path}: {exc.strerror or exc}")
    return TreeWriteError(f"cannot {action} {path}: {exc.strerror or exc}")


@dataclass
class ApplyReport:
    """Outcome of applying one event to the tree.

    Attributes:
        changed: Paths created, rewritten or removed (or that would be,
            in dry-run mode).
        skipped: One message per write that was aborted.
        dry_run: Whether the changes were only simulated.
    """

    changed: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    dry_run: bool = False


class TreeWriter:
    """Filesystem primitives rooted at a single working directory.

    Args:
        root: The working root.
        path_max: Path-length budget in bytes.
        dry_run: Log would-be actions instead of performing them.
    """

    def __init__(self, root: Path, path_max: int = 4096, dry_run: bool = False) -> None:
        self.root = Path(root)
        self.path_max = path_max
        self.dry_run = dry_run

    @property
    def dev_dir(self) -> Path:
        return self.root / "dev"

    @property
    def sys_dir(self) -> Path:
        return self.root / "sys"

    def _check_length(self, path: Path) -> None:
        if len(os.fsencode(str(path))) > self.path_max:
            raise PathTooLongError(str(path), self.path_max)

    def _check_removable(self, path: Path) -> None:
        """Refuse to remove the skeleton directories or anything outside root."""
        root = Path(os.path.realpath(self.root))
        # Resolve the parent only: the path itself may be a symlink to remove
        resolved = Path(os.path.realpath(path.parent)) / path.name
        skeleton = {
            root,
            root / "dev",
            root / "sys",
            root / "sys" / "block",
            root / "sys" / "dev",
            root / "sys" / "dev" / "block",
            root / "sys" / "devices",
        }
        if resolved in skeleton or root not in resolved.parents:
            raise TreeWriteError(f"refusing to remove {path}")

    def _would(self, action: str, path: Path, **details: Any) -> bool:
        logger.info("Dry run", action=action, path=str(path), **details)
        return True

    def ensure_directory(self, path: Path) -> bool:
        """Create a directory and its parents; existing ones are a no-op.

        Returns:
            True if the directory did not exist before.

        Raises:
            PathTooLongError: If the path exceeds the budget.
            TreeWriteError: If a non-directory occupies the path or the
                directory cannot be created.
            WorkingRootError: If the filesystem is full or read-only.
        """
        self._check_length(path)
        try:
            if path.is_dir():
                return False
            if self.dry_run:
                return self._would("mkdir", path)
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise _write_failure("create directory", path, exc) from exc
        return True

    def write_file(self, path: Path, content: str) -> bool:
        """Atomically write content to path.

        The content is staged in a temporary file next to the target and
        moved into place with os.replace, so readers never observe a
        partial file. If the target changes between the initial check and
        the replace, the staged file is discarded.

        Returns:
            True if the file was created or its content changed.

        Raises:
            PathTooLongError: If the path exceeds the budget.
            ConcurrentModificationError: If the target changed meanwhile.
            TreeWriteError: If the target cannot be written.
            WorkingRootError: If the filesystem is full or read-only.
        """
        self._check_length(path)
        try:
            before = _file_identity(path)
            if before is not None and path.is_file() and not path.is_symlink():
                if path.read_text(encoding="utf-8", errors="replace") == content:
                    return False
        except OSError as exc:
            raise _write_failure("read", path, exc) from exc
        if self.dry_run:
            return self._would("write", path, content=content.rstrip("\n"))

        self.ensure_directory(path.parent)
        try:
            fd, staged = tempfile.mkstemp(dir=path.parent, prefix=".blk.", suffix=".tmp")
        except OSError as exc:
            raise _write_failure("stage", path, exc) from exc
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(content)
            if _file_identity(path) != before:
                raise ConcurrentModificationError(str(path))
            os.replace(staged, path)
        except ConcurrentModificationError:
            os.unlink(staged)
            raise
        except OSError as exc:
            os.unlink(staged)
            raise _write_failure("write", path, exc) from exc
        return True

    def touch(self, path: Path) -> bool:
        """Create an empty placeholder file if nothing exists at path."""
        self._check_length(path)
        if os.path.lexists(path):
            return False
        if self.dry_run:
            return self._would("touch", path)
        self.ensure_directory(path.parent)
        try:
            path.touch(exist_ok=True)
        except OSError as exc:
            raise _write_failure("create", path, exc) from exc
        return True

    def ensure_symlink(self, link: Path, target: Path) -> bool:
        """Point link at target using a path relative to the link's directory.

        A correct link is left alone; a link pointing elsewhere (or a plain
        file in its place) is atomically replaced.

        Returns:
            True if the link was created or replaced.

        Raises:
            PathTooLongError: If the link path exceeds the budget.
            TreeWriteError: If a directory occupies the link path or the
                link cannot be written.
            WorkingRootError: If the filesystem is full or read-only.
        """
        self._check_length(link)
        relative = os.path.relpath(target, link.parent)
        try:
            if link.is_symlink() and os.readlink(link) == relative:
                return False
            occupied = link.is_dir() and not link.is_symlink()
        except OSError as exc:
            raise _write_failure("inspect", link, exc) from exc
        if occupied:
            raise TreeWriteError(f"directory in place of symlink {link}")
        if self.dry_run:
            return self._would("symlink", link, target=relative)

        self.ensure_directory(link.parent)
        staged = link.parent / f".blk.{uuid.uuid4().hex}.tmp"
        try:
            os.symlink(relative, staged)
        except OSError as exc:
            raise _write_failure("link", link, exc) from exc
        try:
            os.replace(staged, link)
        except OSError as exc:
            os.unlink(staged)
            raise _write_failure("replace symlink", link, exc) from exc
        return True

    def remove(self, path: Path, recursive: bool = False) -> bool:
        """Remove a file or symlink, or a directory tree when recursive.

        Missing paths are fine. The working root, its skeleton directories
        and anything resolving outside the root are never removed.

        Returns:
            True if something was removed.

        Raises:
            TreeWriteError: If path is protected, is a directory and
                recursive is not set, or cannot be removed.
            WorkingRootError: If the filesystem is read-only.
        """
        if not os.path.lexists(path):
            return False
        self._check_removable(path)
        try:
            is_tree = path.is_dir() and not path.is_symlink()
        except OSError as exc:
            raise _write_failure("inspect", path, exc) from exc
        if is_tree and not recursive:
            raise TreeWriteError(f"refusing to remove directory {path}")
        if self.dry_run:
            return self._would("remove", path)
        try:
            if is_tree:
                shutil.rmtree(path)
            else:
                path.unlink(missing_ok=True)
        except OSError as exc:
            raise _write_failure("remove", path, exc) from exc
        return True


class TreeBuilder:
    """Applies DeviceEvents to the working tree.

    Args:
        writer: Filesystem primitives for the working root.
        registry: Live-device registry, updated on every event.
        extra_capture: Write the EXTRA/ attribute sets.
    """

    def __init__(
        self,
        writer: TreeWriter,
        registry: DeviceRegistry,
        extra_capture: bool = False,
    ) -> None:
        self._writer = writer
        self._registry = registry
        self._extra_capture = extra_capture

    @property
    def writer(self) -> TreeWriter:
        return self._writer

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    # ------------------------------------------------------------------
    # Path helpers
    # ------------------------------------------------------------------

    def node_path(self, device_name: str) -> Path:
        """Location of a device node (or alias) under the working root."""
        return self._writer.root / device_name.lstrip("/")

    def metadata_dir(self, device_path: str) -> Path:
        """Location of a device's metadata directory."""
        return self._writer.sys_dir / device_path.lstrip("/")

    def block_link(self, kernel_name: str) -> Path:
        return self._writer.sys_dir / "block" / kernel_name

    def dev_block_link(self, device_number: str) -> Path:
        return self._writer.sys_dir / "dev" / "block" / device_number

    # ------------------------------------------------------------------
    # Event application
    # ------------------------------------------------------------------

    def apply(self, event: DeviceEvent) -> ApplyReport:
        """Apply one event to the tree and the registry.

        Failures of individual writes are logged and listed in the report;
        the remaining writes of the event still happen.

        Args:
            event: A parsed, validated DeviceEvent.

        Returns:
            ApplyReport describing what changed and what was skipped.
        """
        report = ApplyReport(dry_run=self._writer.dry_run)
        if event.action is Action.REMOVE:
            self._apply_remove(event, report)
        else:
            self._apply_add(event, report)
        logger.debug(
            "Applied event",
            action=event.action.value,
            device=event.device_name,
            changed=len(report.changed),
            skipped=len(report.skipped),
        )
        return report

    def _attempt(
        self,
        report: ApplyReport,
        event: DeviceEvent,
        path: Path | str,
        operation: Callable[[], bool],
    ) -> None:
        try:
            if operation():
                report.changed.append(str(path))
        except (RecordError, TreeWriteError) as exc:
            logger.warning(
                "Skipping write",
                device=event.device_name,
                path=str(path),
                reason=exc.message,
            )
            report.skipped.append(exc.message)

    def metadata_files(self, event: DeviceEvent) -> dict[str, str]:
        """Return relative file name to content for an add/change event."""
        tables: list[dict[str, str]] = [fields.GENERIC_FILES]
        if event.device_type is DeviceType.PARTITION:
            tables.append(fields.PARTITION_FILES)
        elif event.device_type is DeviceType.DISK:
            tables.append(fields.DISK_FILES)
        if self._extra_capture:
            tables.append(fields.EXTRA_FILES)
            if event.is_device_mapper:
                tables.append(fields.DM_EXTRA_FILES)

        files = {"dev": f"{event.device_number}\n"}
        for table in tables:
            for field_name, relative in table.items():
                value = event.attributes.get(field_name)
                if value is not None:
                    files[relative] = f"{value}\n"
        return files

    def _apply_add(self, event: DeviceEvent, report: ApplyReport) -> None:
        meta = self.metadata_dir(event.device_path)
        self._attempt(report, event, meta, lambda: self._writer.ensure_directory(meta))

        files = self.metadata_files(event)
        for relative, content in sorted(files.items()):
            target = meta / relative
            self._attempt(
                report, event, target, lambda t=target, c=content: self._writer.write_file(t, c)
            )
        for relative in sorted(_MANAGED_FILES - files.keys()):
            stale = meta / relative
            self._attempt(report, event, stale, lambda s=stale: self._writer.remove(s))

        node = self.node_path(event.device_name)
        self._attempt(report, event, node, lambda: self._writer.touch(node))

        for alias in event.device_links:
            self._attempt(report, event, alias, lambda a=alias: self._link_alias(a, node))

        dev_link = self.dev_block_link(event.device_number)
        self._attempt(
            report, event, dev_link, lambda: self._writer.ensure_symlink(dev_link, meta)
        )
        if event.device_type is DeviceType.DISK:
            block = self.block_link(event.kernel_name)
            self._attempt(
                report, event, block, lambda: self._writer.ensure_symlink(block, meta)
            )

        self._registry.record(
            event.device_number,
            RegistryEntry(
                device_name=event.device_name,
                device_path=event.device_path,
                holders=event.holders,
                slaves=event.slaves,
            ),
        )

    def _link_alias(self, alias: str, node: Path) -> bool:
        sanitize(alias, UsageClass.LINK, fields.FIELD_DEVLINKS)
        return self._writer.ensure_symlink(self.node_path(alias), node)

    def _unlink_alias(self, alias: str, node: Path) -> bool:
        sanitize(alias, UsageClass.LINK, fields.FIELD_DEVLINKS)
        link = self.node_path(alias)
        if link.is_symlink():
            # The alias may already belong to another device
            current = (link.parent / os.readlink(link)).resolve(strict=False)
            if current != node.resolve(strict=False):
                logger.debug("Alias now points elsewhere, keeping it", alias=alias)
                return False
        return self._writer.remove(link)

    def _apply_remove(self, event: DeviceEvent, report: ApplyReport) -> None:
        node = self.node_path(event.device_name)
        for alias in event.device_links:
            self._attempt(report, event, alias, lambda a=alias: self._unlink_alias(a, node))
        self._attempt(report, event, node, lambda: self._writer.remove(node))

        block = self.block_link(event.kernel_name)
        self._attempt(report, event, block, lambda: self._writer.remove(block))
        dev_link = self.dev_block_link(event.device_number)
        self._attempt(report, event, dev_link, lambda: self._writer.remove(dev_link))

        meta = self.metadata_dir(event.device_path)
        self._attempt(
            report, event, meta, lambda: self._writer.remove(meta, recursive=True)
        )

        self._registry.evict(event.device_number)
