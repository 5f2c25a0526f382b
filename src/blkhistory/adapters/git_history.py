"""git-backed versioned history of the working tree.

Each operation shells out to git with the working root as repository.
Commit author and committer dates are set from the event timestamp, so
exporting the same event stream twice yields the same commit dates.
"""

from __future__ import annotations

import os
import subprocess
from pathlib import Path

from blkhistory.errors import HistoryBackendError
from blkhistory.observability import get_logger

logger = get_logger(__name__)


class GitHistory:
    """IHistoryBackend implemented with the git command-line tool.

    Args:
        root: Working root, used as the repository work tree.
        binary: git executable.
        author_name: Author and committer name for every commit.
        author_email: Author and committer email for every commit.
        dry_run: Log the git commands instead of running them.
    """

    def __init__(
        self,
        root: Path,
        binary: str = "git",
        author_name: str = "blkhistory",
        author_email: str = "blkhistory@localhost",
        dry_run: bool = False,
    ) -> None:
        self.root = Path(root)
        self._binary = binary
        self._author_name = author_name
        self._author_email = author_email
        self._dry_run = dry_run

    def _run(self, *args: str, env: dict[str, str] | None = None) -> str:
        command = [
            self._binary,
            "-c",
            f"user.name={self._author_name}",
            "-c",
            f"user.email={self._author_email}",
            "-c",
            "commit.gpgsign=false",
            "-c",
            "tag.gpgsign=false",
            *args,
        ]
        if self._dry_run:
            logger.info("Dry run", action="git", command=" ".join(args))
            return ""
        try:
            result = subprocess.run(
                command,
                cwd=self.root,
                capture_output=True,
                text=True,
                check=False,
                env=env,
            )
        except OSError as exc:
            raise HistoryBackendError("git", f"cannot start: {exc}") from exc
        if result.returncode != 0:
            raise HistoryBackendError(
                "git",
                f"{args[0]} failed: {(result.stderr or result.stdout).strip()}",
                returncode=result.returncode,
            )
        return result.stdout

    def init(self) -> None:
        self._run("init", "--quiet")
        logger.info("Initialized history", root=str(self.root))

    def stage_all(self) -> None:
        self._run("add", "--all")

    def commit(self, subject: str, body: str, timestamp_us: int) -> None:
        date = f"@{timestamp_us // 1_000_000} +0000"
        env = dict(os.environ, GIT_AUTHOR_DATE=date, GIT_COMMITTER_DATE=date)
        self._run(
            "commit",
            "--quiet",
            "--allow-empty",
            "--no-verify",
            "-m",
            subject,
            "-m",
            body,
            env=env,
        )

    def tag(self, label: str) -> None:
        # Several events within one second move the tag to the latest one
        self._run("tag", "--force", label)
