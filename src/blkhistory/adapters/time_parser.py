"""Window boundary parsing through GNU date(1).

``date --date`` understands the same loose human formats users type for
journal queries ("2024-05-01 10:00", "yesterday", "3 hours ago"). The
result is printed as seconds plus six fractional digits and converted to
the microsecond unit used by journal timestamps.
"""

from __future__ import annotations

import os
import subprocess

from blkhistory.errors import TimeParseError


class DateTimeParser:
    """ITimeParser backed by the ``date`` executable.

    Args:
        binary: date executable (GNU coreutils).
    """

    def __init__(self, binary: str = "date") -> None:
        self._binary = binary

    def to_microseconds(self, text: str) -> int:
        """Convert a human timestamp to microseconds since the epoch.

        A bare integer is taken as microseconds already, which is the unit
        journal exports carry in ``__REALTIME_TIMESTAMP``.

        Raises:
            TimeParseError: If date fails or prints something unexpected.
        """
        stripped = text.strip()
        if stripped.isdigit():
            return int(stripped)

        env = dict(os.environ, LC_ALL="C")
        try:
            result = subprocess.run(
                [self._binary, f"--date={stripped}", "+%s%6N"],
                capture_output=True,
                text=True,
                check=False,
                env=env,
            )
        except OSError as exc:
            raise TimeParseError("date", f"cannot start: {exc}") from exc

        if result.returncode != 0:
            raise TimeParseError(
                "date",
                result.stderr.strip() or f"cannot parse timestamp {text!r}",
                returncode=result.returncode,
            )
        output = result.stdout.strip()
        try:
            return int(output)
        except ValueError as exc:
            raise TimeParseError("date", f"unexpected output {output!r} for {text!r}") from exc
