"""Holder/slave symlink resolution.

Holder and slave lists arrive on each event as device numbers, but the
devices they reference may appear later in the stream, so the links are
derived in one pass after the whole window has been applied. The result
depends only on the final registry state: every link is recomputed from
the registry, never patched incrementally.

For a device A whose holders list contains B::

    sys/<B>/holders/<A name>  ->  sys/<A>
    sys/<A>/slaves/<B name>   ->  sys/<B>

A slaves list on B naming A is the same relationship seen from B.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from blkhistory.errors import InvalidDeviceIdentityError, TreeWriteError
from blkhistory.observability import get_logger
from blkhistory.topology.registry import DeviceRegistry, RegistryEntry
from blkhistory.topology.sanitizer import check_device_number, split_references
from blkhistory.topology.tree import TreeWriter

logger = get_logger(__name__)


@dataclass
class ResolutionReport:
    """Outcome of one resolution pass.

    Attributes:
        links: Symlinks created or replaced.
        invalid: References rejected as malformed device numbers.
        dangling: References to device numbers absent from the registry.
        failed: Symlink writes that were aborted.
    """

    links: list[str] = field(default_factory=list)
    invalid: list[str] = field(default_factory=list)
    dangling: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class DependencyResolver:
    """Builds the holders/slaves symlink graph from the device registry.

    Args:
        writer: Filesystem primitives for the working root.
        registry: Live-device registry produced by the tree builder.
    """

    def __init__(self, writer: TreeWriter, registry: DeviceRegistry) -> None:
        self._writer = writer
        self._registry = registry

    def resolve(self) -> ResolutionReport:
        """Link every live holder/slave pair recorded in the registry.

        Returns:
            ResolutionReport with created links and skipped references.
        """
        report = ResolutionReport()
        for device_number, entry in self._registry.items():
            for reference in split_references(entry.holders):
                holder = self._lookup(device_number, reference, report)
                if holder is not None:
                    self._link_pair(upper=holder, lower=entry, report=report)
            for reference in split_references(entry.slaves):
                slave = self._lookup(device_number, reference, report)
                if slave is not None:
                    self._link_pair(upper=entry, lower=slave, report=report)

        logger.info(
            "Resolved device dependencies",
            links=len(report.links),
            invalid=len(report.invalid),
            dangling=len(report.dangling),
        )
        return report

    def _lookup(
        self,
        device_number: str,
        reference: str,
        report: ResolutionReport,
    ) -> RegistryEntry | None:
        try:
            check_device_number(reference)
        except InvalidDeviceIdentityError:
            logger.warning(
                "Skipping invalid dependency reference",
                device_number=device_number,
                reference=reference,
            )
            report.invalid.append(reference)
            return None

        target = self._registry.get(reference)
        if target is None:
            logger.debug(
                "Dependency reference not live",
                device_number=device_number,
                reference=reference,
            )
            report.dangling.append(reference)
        return target

    def _link_pair(
        self,
        upper: RegistryEntry,
        lower: RegistryEntry,
        report: ResolutionReport,
    ) -> None:
        upper_dir = self._writer.sys_dir / upper.device_path.lstrip("/")
        lower_dir = self._writer.sys_dir / lower.device_path.lstrip("/")
        pairs = (
            (upper_dir / "holders" / lower.kernel_name, lower_dir),
            (lower_dir / "slaves" / upper.kernel_name, upper_dir),
        )
        for link, target in pairs:
            try:
                if self._writer.ensure_symlink(link, target):
                    report.links.append(str(link))
            except TreeWriteError as exc:
                logger.warning("Skipping dependency link", link=str(link), reason=exc.message)
                report.failed.append(exc.message)
