"""Test configuration."""

from __future__ import annotations

import io
import os
import shutil
import subprocess
from pathlib import Path
from typing import Generator, List

import pytest
from click.testing import CliRunner
from rich.console import Console

from dotsync.core.cache import CacheSynchronizer
from dotsync.core.paths import PathCodec
from dotsync.core.store import RecordStore


class FakeProvider:
    """Storage provider that records calls instead of talking to a remote."""

    kind = "fake"

    def __init__(self) -> None:
        self.initialized = 0
        self.pushed: List[Path] = []
        self.pulled: List[Path] = []

    def initialize_storage(self) -> None:
        self.initialized += 1

    def push_to_storage(self, cache_root: Path) -> None:
        self.pushed.append(Path(cache_root))

    def pull_from_storage(self, cache_root: Path) -> None:
        self.pulled.append(Path(cache_root))


@pytest.fixture
def home_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create a fake home directory and point $HOME at it."""
    home = tmp_path / "home" / "u"
    home.mkdir(parents=True)
    monkeypatch.setenv("HOME", str(home))
    return home


@pytest.fixture
def codec(home_dir: Path) -> PathCodec:
    """Return a codec for the fake home directory."""
    return PathCodec(str(home_dir))


@pytest.fixture
def store(tmp_path: Path, codec: PathCodec) -> Generator[RecordStore, None, None]:
    """Create a record store with its schema in place."""
    record_store = RecordStore(tmp_path / "state.db", codec)
    record_store.ensure_schema()
    yield record_store
    record_store.close()


@pytest.fixture
def output() -> io.StringIO:
    """Buffer receiving console output."""
    return io.StringIO()


@pytest.fixture
def console(output: io.StringIO) -> Console:
    """Console writing plain text into the output buffer."""
    return Console(file=output, width=200, color_system=None)


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """Return an empty cache root."""
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def synchronizer(cache_root: Path, console: Console) -> CacheSynchronizer:
    """Create a cache synchronizer writing to the test console."""
    return CacheSynchronizer(cache_root, console=console)


@pytest.fixture
def fake_provider() -> FakeProvider:
    """Return a recording storage provider."""
    return FakeProvider()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Return a CLI runner."""
    return CliRunner()


@pytest.fixture
def git_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Give git a commit identity and keep user configuration out of the way."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    monkeypatch.setenv("GIT_AUTHOR_NAME", "Test User")
    monkeypatch.setenv("GIT_AUTHOR_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_COMMITTER_NAME", "Test User")
    monkeypatch.setenv("GIT_COMMITTER_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", os.devnull)


@pytest.fixture
def bare_remote(tmp_path: Path, git_env: None) -> str:
    """Create an empty bare repository to push to."""
    remote = tmp_path / "remote.git"
    subprocess.run(["git", "init", "--bare", str(remote)], check=True, capture_output=True)
    return str(remote)
