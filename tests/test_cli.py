"""Tests for the command line interface."""

import os
from pathlib import Path

import pytest
from click.testing import CliRunner
from rich.console import Console

from dotsync.cli import Session, cli, pull, show, sync
from dotsync.core.paths import PathCodec
from dotsync.core.store import RecordStore


def configure_provider(home: Path, kind: str = "git", location: str = "file:///nowhere") -> None:
    """Record a storage provider for ``home`` without touching any remote."""
    state = home / ".dot-sync"
    state.mkdir(parents=True, exist_ok=True)
    with RecordStore(state / "state.db", PathCodec(str(home))) as store:
        store.ensure_schema()
        store.set_provider(kind, location)


def test_help(cli_runner: CliRunner) -> None:
    """Test that help lists the commands."""
    result = cli_runner.invoke(cli, ["--help"])
    assert result.exit_code == 0
    for command in ("mark", "show", "sync", "pull", "delete", "storage"):
        assert command in result.output


def test_requires_provider(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that commands refuse to run before storage init."""
    result = cli_runner.invoke(cli, ["show"])

    assert result.exit_code == 1
    assert "No storage provider configured" in result.output
    assert (home_dir / ".dot-sync" / "state.db").exists()


def test_unsupported_configured_provider(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that an unknown persisted provider kind is reported."""
    configure_provider(home_dir, kind="s3")

    result = cli_runner.invoke(cli, ["show"])

    assert result.exit_code != 0
    assert "unsupported storage provider: s3" in result.output


def test_mark_and_show(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test marking files and listing them."""
    configure_provider(home_dir)
    bashrc = str(home_dir / ".bashrc")

    result = cli_runner.invoke(cli, ["mark", bashrc, bashrc])
    assert result.exit_code == 0
    assert "Marked entries for syncing" in result.output

    result = cli_runner.invoke(cli, ["show"])
    assert result.exit_code == 0
    assert "(2)" in result.output

    with RecordStore(home_dir / ".dot-sync" / "state.db", PathCodec(str(home_dir))) as store:
        rows = store.connect().execute("SELECT path FROM files").fetchall()
    assert [row["path"] for row in rows] == ["HOME/.bashrc", "HOME/.bashrc"]


def test_mark_home_relative(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that ~ expands to the home directory."""
    configure_provider(home_dir)

    result = cli_runner.invoke(cli, ["mark", "~/.vimrc"])

    assert result.exit_code == 0
    with RecordStore(home_dir / ".dot-sync" / "state.db", PathCodec(str(home_dir))) as store:
        assert [record.path for record in store.list_all()] == [str(home_dir / ".vimrc")]


def test_mark_nothing(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test marking without arguments."""
    configure_provider(home_dir)

    result = cli_runner.invoke(cli, ["mark"])

    assert result.exit_code == 0
    assert "No changes." in result.output


def test_delete(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test deleting a file whose cache slot was never created."""
    configure_provider(home_dir)
    bashrc = str(home_dir / ".bashrc")
    cli_runner.invoke(cli, ["mark", bashrc])

    result = cli_runner.invoke(cli, ["delete", bashrc])

    assert result.exit_code == 0
    assert "Successfully deleted 1 file(s)" in result.output
    result = cli_runner.invoke(cli, ["show"])
    assert "No files currently tracked" in result.output


def test_delete_requires_paths(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that delete needs at least one path."""
    configure_provider(home_dir)

    result = cli_runner.invoke(cli, ["delete"])

    assert result.exit_code == 2


def test_storage_init_unsupported(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that storage init rejects unknown providers."""
    result = cli_runner.invoke(cli, ["storage", "init", "--provider", "s3", "--remote-url", "x"])

    assert result.exit_code != 0
    assert "unsupported storage provider: s3" in result.output


def test_storage_init_requires_remote(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that the git provider needs a remote URL."""
    result = cli_runner.invoke(cli, ["storage", "init"])

    assert result.exit_code != 0
    assert "--remote-url is required" in result.output


def test_sync_and_pull_between_machines(
    cli_runner: CliRunner,
    tmp_path: Path,
    bare_remote: str,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Test publishing dotfiles on one machine and restoring them on another."""
    first = tmp_path / "first"
    (first / ".config" / "nvim").mkdir(parents=True)
    (first / ".bashrc").write_text("export EDITOR=vim\n")
    (first / ".config" / "nvim" / "init.lua").write_text("-- nvim\n")
    monkeypatch.setenv("HOME", str(first))

    result = cli_runner.invoke(cli, ["storage", "init", "--remote-url", bare_remote])
    assert result.exit_code == 0, result.output
    result = cli_runner.invoke(
        cli, ["mark", str(first / ".bashrc"), str(first / ".config" / "nvim")]
    )
    assert result.exit_code == 0, result.output
    result = cli_runner.invoke(cli, ["sync"])
    assert result.exit_code == 0, result.output
    assert "Sync complete" in result.output

    second = tmp_path / "second"
    second.mkdir()
    monkeypatch.setenv("HOME", str(second))

    result = cli_runner.invoke(cli, ["storage", "init", "--remote-url", bare_remote])
    assert result.exit_code == 0, result.output
    result = cli_runner.invoke(cli, ["pull", "--adopt"])
    assert result.exit_code == 0, result.output
    assert "Pull complete." in result.output

    assert (second / ".bashrc").read_text() == "export EDITOR=vim\n"
    assert (second / ".config" / "nvim" / "init.lua").read_text() == "-- nvim\n"
    assert os.path.exists(second / ".dot-sync" / "files" / "manifest.yaml")


def test_command_without_provider(cli_runner: CliRunner, home_dir: Path) -> None:
    """Test that sync and pull refuse to run on a session without a provider."""
    session = Session.open(str(home_dir), Console())
    try:
        for command in (sync, pull):
            result = cli_runner.invoke(command, obj=session)
            assert result.exit_code == 1
            assert "No storage provider configured" in result.output
    finally:
        session.close()


def test_command_without_session(cli_runner: CliRunner) -> None:
    """Test that commands invoked outside the group report a usage error."""
    result = cli_runner.invoke(show)

    assert result.exit_code == 2
    assert "No dot-sync session" in result.output
