"""Hand-off of the reconstructed tree to lsblk.

lsblk reads /sys and /dev relative to ``--sysroot``, so pointing it at the
working root lists the devices as they existed at the end of the window.
Display arguments are passed through untouched after a superficial
well-formedness check.
"""

from __future__ import annotations

import subprocess
from collections.abc import Sequence
from pathlib import Path

from blkhistory.errors import EnumerationToolError
from blkhistory.observability import get_logger

logger = get_logger(__name__)


def check_arguments(arguments: Sequence[str]) -> list[str]:
    """Reject pass-through arguments that cannot be a command-line word.

    Raises:
        EnumerationToolError: For an empty argument or one containing NUL
            or a line break.
    """
    checked: list[str] = []
    for argument in arguments:
        if not argument or any(char in argument for char in ("\x00", "\n", "\r")):
            raise EnumerationToolError("lsblk", f"malformed argument {argument!r}")
        checked.append(argument)
    return checked


class LsblkTool:
    """IEnumerationTool that runs lsblk against the working root.

    Args:
        binary: lsblk executable.
        dry_run: Log the command instead of running it.
    """

    def __init__(self, binary: str = "lsblk", dry_run: bool = False) -> None:
        self._binary = binary
        self._dry_run = dry_run

    def command(self, root: Path, arguments: Sequence[str]) -> list[str]:
        return [self._binary, "--sysroot", str(root), *check_arguments(arguments)]

    def run(self, root: Path, arguments: Sequence[str]) -> int:
        command = self.command(root, arguments)
        if self._dry_run:
            logger.info("Dry run", action="exec", command=" ".join(command))
            return 0

        try:
            # Output goes straight to the user's terminal
            result = subprocess.run(command, check=False)
        except OSError as exc:
            raise EnumerationToolError("lsblk", f"cannot start: {exc}") from exc
        if result.returncode != 0:
            raise EnumerationToolError(
                "lsblk",
                f"exited with status {result.returncode}",
                returncode=result.returncode,
            )
        return 0
