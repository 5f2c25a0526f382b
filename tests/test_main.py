"""Tests for the blkhistory command-line entry point.

lsblk, git and date are never executed: subprocess.run is patched in the
adapter modules.
"""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from blkhistory.main import build_parser, main

SDA_PATH = "/devices/pci0000:00/0000:00:1f.2/ata1/host0/target0:0:0/0:0:0:0/block/sda"


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("BLKHISTORY_WORKING_ROOT", "BLKHISTORY_DRY_RUN", "BLKHISTORY_SYSLOG_IDENTIFIER"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def export(tmp_path: Path, make_record) -> Path:
    path = tmp_path / "journal.json"
    records = [
        make_record(timestamp=100, DEVICE_MODEL="VBOX"),
        make_record(
            devname="/dev/sda1",
            devpath=f"{SDA_PATH}/sda1",
            minor="1",
            devtype="partition",
            timestamp=200,
        ),
        make_record(devname="/dev/sdb", devpath="/devices/virtual/block/sdb", minor="16", timestamp=300),
    ]
    path.write_text("".join(json.dumps(r) + "\n" for r in records))
    return path


def ok() -> MagicMock:
    result = MagicMock()
    result.returncode = 0
    return result


def test_parser_accepts_passthrough_arguments() -> None:
    args = build_parser().parse_args(["--since", "100", "--history", "--", "-o", "NAME"])
    assert args.since == "100"
    assert args.history is True
    assert args.lsblk_args == ["-o", "NAME"]


def test_parser_keeps_later_separators_for_lsblk() -> None:
    args = build_parser().parse_args(["--", "-o", "NAME", "--", "/dev/sda"])
    assert args.lsblk_args == ["-o", "NAME", "--", "/dev/sda"]


def test_parser_rejects_file_and_stdin_together(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        build_parser().parse_args(["--file", str(tmp_path / "x"), "--stdin"])
    assert excinfo.value.code == 2


def test_live_run_hands_tree_to_lsblk(tmp_path: Path, export: Path) -> None:
    root = tmp_path / "root"
    with patch("blkhistory.adapters.enumeration.subprocess.run", return_value=ok()) as run:
        status = main(
            ["--file", str(export), "--root", str(root), "--until", "200", "--", "-o", "NAME"]
        )

    assert status == 0
    run.assert_called_once()
    assert run.call_args.args[0] == ["lsblk", "--sysroot", str(root), "-o", "NAME"]
    assert (root / "dev" / "sda1").exists()
    assert not (root / "dev" / "sdb").exists()
    assert (root / "sys" / "block" / "sda").is_symlink()


def test_temporary_root_is_removed_after_live_run(export: Path) -> None:
    with patch("blkhistory.adapters.enumeration.subprocess.run", return_value=ok()) as run:
        assert main(["--file", str(export)]) == 0

    used_root = Path(run.call_args.args[0][2])
    assert used_root.name.startswith("blkhistory-")
    assert not used_root.exists()


def test_dry_run_changes_nothing(tmp_path: Path, export: Path) -> None:
    root = tmp_path / "root"
    with patch("blkhistory.adapters.enumeration.subprocess.run") as run:
        status = main(["--file", str(export), "--root", str(root), "--dry-run"])

    assert status == 0
    run.assert_not_called()
    assert not root.exists()


def test_dry_run_without_root_creates_no_directory(export: Path) -> None:
    with patch("blkhistory.main.tempfile.mkdtemp") as mkdtemp, patch(
        "blkhistory.adapters.git_history.subprocess.run"
    ) as run:
        assert main(["--file", str(export), "--history", "--dry-run"]) == 0

    mkdtemp.assert_not_called()
    run.assert_not_called()


def test_history_dry_run_reports_commits(
    tmp_path: Path, export: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "root"
    with patch("blkhistory.adapters.git_history.subprocess.run") as run:
        status = main(["--file", str(export), "--root", str(root), "--history", "--dry-run"])

    assert status == 0
    run.assert_not_called()
    assert f"history: {root} (3 commits)" in capsys.readouterr().out


def test_fatal_error_exits_with_status_one(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    status = main(["--file", str(tmp_path / "missing.json"), "--root", str(tmp_path / "root")])

    assert status == 1
    assert capsys.readouterr().err.startswith("error: file:")


def test_enumeration_failure_exits_with_status_one(tmp_path: Path, export: Path) -> None:
    failed = MagicMock()
    failed.returncode = 32
    with patch("blkhistory.adapters.enumeration.subprocess.run", return_value=failed):
        assert main(["--file", str(export), "--root", str(tmp_path / "root")]) == 1
