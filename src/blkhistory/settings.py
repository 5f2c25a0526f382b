"""Settings for blkhistory.

Every option can be set through an environment variable with the
BLKHISTORY_ prefix (e.g. ``BLKHISTORY_SYSLOG_IDENTIFIER``). Command-line
flags override the environment.

Settings cover:
- Event selection (journal identifier)
- The working tree (root location, path-length budget, extended capture)
- External collaborators (journalctl, lsblk, git, date binaries)
- History commit identity
- Logging
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for a blkhistory run.

    Environment variable prefix: BLKHISTORY_
    """

    # -------------------------------------------------------------------------
    # Event selection
    # -------------------------------------------------------------------------

    syslog_identifier: str = Field(
        default="lsblk-monitor",
        description="SYSLOG_IDENTIFIER the monitor uses when writing block events "
        "to the journal. Records with any other identifier are ignored.",
    )

    # -------------------------------------------------------------------------
    # Working tree
    # -------------------------------------------------------------------------

    working_root: Path | None = Field(
        default=None,
        description="Directory the synthetic /dev and /sys trees are built under. "
        "A temporary directory is created when unset.",
    )
    path_max: int = Field(
        default=4096,
        description="Path-length budget in bytes. Writes to longer paths are aborted.",
    )
    extra_capture: bool = Field(
        default=False,
        description="Write the supplementary EXTRA/ attributes. Always on in history mode.",
    )
    dry_run: bool = Field(
        default=False,
        description="Validate and report every filesystem action without performing it.",
    )

    # -------------------------------------------------------------------------
    # External collaborators
    # -------------------------------------------------------------------------

    journalctl_binary: str = Field(default="journalctl", description="journalctl executable.")
    lsblk_binary: str = Field(default="lsblk", description="Enumeration tool executable.")
    git_binary: str = Field(default="git", description="git executable for history mode.")
    date_binary: str = Field(
        default="date",
        description="GNU date executable used to parse --since/--until timestamps.",
    )

    # -------------------------------------------------------------------------
    # History mode
    # -------------------------------------------------------------------------

    git_author_name: str = Field(
        default="blkhistory",
        description="Author and committer name recorded on history commits.",
    )
    git_author_email: str = Field(
        default="blkhistory@localhost",
        description="Author and committer email recorded on history commits.",
    )

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------

    log_level: str = Field(default="warning", description="Minimum log level.")
    log_json: bool = Field(default=False, description="Emit JSON log lines.")

    model_config = SettingsConfigDict(env_prefix="BLKHISTORY_")
