"""Event sources feeding journal records to the reconstructor.

Three sources are provided:

- JournalEventSource: runs ``journalctl -o json`` with the identifier,
  subsystem and time window built into the query. Records arrive already
  filtered, so the reconstructor skips its own window admission.
- FileEventSource: reads a saved JSON-lines export.
- StreamEventSource: reads JSON lines from a stream, stdin by default.

File and stream records are unfiltered; the reconstructor applies the
time window in-process. Lines that are not JSON objects are logged and
skipped.
"""

from __future__ import annotations

import json
import subprocess
import sys
import tempfile
from collections.abc import Iterable, Iterator
from pathlib import Path
from typing import Any, TextIO

from blkhistory.errors import EventSourceError
from blkhistory.observability import get_logger
from blkhistory.topology import fields

logger = get_logger(__name__)


def decode_lines(lines: Iterable[str], origin: str) -> Iterator[dict[str, Any]]:
    """Decode JSON-lines text into record dicts.

    Args:
        lines: Text lines, one JSON object each.
        origin: Name of the source, used in log messages.

    Yields:
        One dict per well-formed line.
    """
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            record = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.warning("Skipping undecodable record", origin=origin, line=number, error=str(exc))
            continue
        if not isinstance(record, dict):
            logger.warning("Skipping non-object record", origin=origin, line=number)
            continue
        yield record


def _journal_time(microseconds: int) -> str:
    """Format microseconds since the epoch as a journalctl ``@`` timestamp."""
    return f"@{microseconds // 1_000_000}.{microseconds % 1_000_000:06d}"


class FileEventSource:
    """Unfiltered records from a JSON-lines file.

    Args:
        path: The exported journal file.
    """

    prefiltered = False

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def records(self) -> Iterator[dict[str, Any]]:
        try:
            handle = self._path.open("r", encoding="utf-8", errors="replace")
        except OSError as exc:
            raise EventSourceError("file", f"cannot open {self._path}: {exc}") from exc
        with handle:
            yield from decode_lines(handle, str(self._path))


class StreamEventSource:
    """Unfiltered records from an already-open text stream.

    Args:
        stream: The stream to read; stdin when omitted.
    """

    prefiltered = False

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def records(self) -> Iterator[dict[str, Any]]:
        stream = self._stream if self._stream is not None else sys.stdin
        yield from decode_lines(stream, "stdin")


class JournalEventSource:
    """Window-filtered records queried from the systemd journal.

    Args:
        identifier: SYSLOG_IDENTIFIER of the block-event monitor.
        since_us: Inclusive window start in microseconds, or None.
        until_us: Inclusive window end in microseconds, or None.
        binary: journalctl executable.
    """

    prefiltered = True

    def __init__(
        self,
        identifier: str,
        since_us: int | None = None,
        until_us: int | None = None,
        binary: str = "journalctl",
    ) -> None:
        self._identifier = identifier
        self._since_us = since_us
        self._until_us = until_us
        self._binary = binary

    def command(self) -> list[str]:
        """Return the journalctl command line for this query."""
        command = [
            self._binary,
            "--output=json",
            "--no-pager",
            "--quiet",
        ]
        if self._since_us is not None:
            command.append(f"--since={_journal_time(self._since_us)}")
        if self._until_us is not None:
            command.append(f"--until={_journal_time(self._until_us)}")
        command += [
            f"{fields.FIELD_IDENTIFIER}={self._identifier}",
            f"{fields.FIELD_SUBSYSTEM}={fields.BLOCK_SUBSYSTEM}",
        ]
        return command

    def records(self) -> Iterator[dict[str, Any]]:
        command = self.command()
        logger.info("Querying journal", command=" ".join(command))
        # stderr goes to a file so a chatty journalctl cannot block on a full pipe
        with tempfile.TemporaryFile(mode="w+", encoding="utf-8", errors="replace") as errors:
            try:
                process = subprocess.Popen(
                    command,
                    stdout=subprocess.PIPE,
                    stderr=errors,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                )
            except OSError as exc:
                raise EventSourceError("journalctl", f"cannot start: {exc}") from exc

            finished = False
            try:
                yield from decode_lines(process.stdout or [], "journal")
                finished = True
            finally:
                if not finished:
                    # Reader stopped early (end of window or error): stop the query
                    process.terminate()
                if process.stdout is not None:
                    process.stdout.close()
                process.wait()

            if process.returncode != 0:
                errors.seek(0)
                message = errors.read().strip()
                raise EventSourceError(
                    "journalctl",
                    message or f"exited with status {process.returncode}",
                    returncode=process.returncode,
                )
