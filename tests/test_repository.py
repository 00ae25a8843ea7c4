"""Tests for the git working copy wrapper."""

import subprocess
from pathlib import Path

import pytest

from dotsync.core.repository import GitError, GitRepository


@pytest.fixture
def repo(tmp_path: Path, git_env: None) -> GitRepository:
    """Create an initialized working copy on branch main."""
    repository = GitRepository(tmp_path / "work")
    repository.init("main")
    return repository


def test_init(tmp_path: Path, git_env: None) -> None:
    """Test initializing a new working copy."""
    repository = GitRepository(tmp_path / "nested" / "work")
    assert not repository.exists()

    repository.init("main")

    assert repository.exists()
    assert not repository.has_commits()
    assert repository.get_current_branch() == "main"


def test_init_is_repeatable(repo: GitRepository) -> None:
    """Test that initializing twice keeps the working copy."""
    (repo.path / "file.txt").write_text("content\n")
    repo.add_all(repo.path)
    repo.commit("first")

    repo.init("other")

    assert repo.has_commits()
    assert repo.get_current_branch() == "main"


def test_set_remote(repo: GitRepository) -> None:
    """Test adding a remote and pointing it somewhere else."""
    repo.set_remote("origin", "https://example.com/one.git")
    assert repo.get_remote_url("origin") == "https://example.com/one.git"

    repo.set_remote("origin", "https://example.com/two.git")
    assert repo.get_remote_url("origin") == "https://example.com/two.git"


def test_commit(repo: GitRepository) -> None:
    """Test committing staged changes."""
    assert not repo.commit("empty")

    cache = repo.path / "files"
    cache.mkdir()
    (cache / "1").write_text("one\n")
    (repo.path / "state.db").write_text("not staged\n")
    repo.add_all(cache)

    assert repo.commit("sync")
    assert repo.has_commits()
    tracked = subprocess.run(
        ["git", "ls-files"], cwd=repo.path, check=True, capture_output=True, text=True
    ).stdout.split()
    assert tracked == ["files/1"]


def test_clean(repo: GitRepository) -> None:
    """Test that clean only touches the given directory."""
    cache = repo.path / "files"
    (cache / "stray").mkdir(parents=True)
    (cache / "stray" / "file").write_text("stray\n")
    (cache / "2").write_text("two\n")
    (repo.path / "state.db").write_text("keep\n")

    repo.clean(cache)

    assert not (cache / "stray").exists()
    assert not (cache / "2").exists()
    assert (repo.path / "state.db").exists()


def test_push_fetch_reset(repo: GitRepository, bare_remote: str, tmp_path: Path) -> None:
    """Test mirroring a working copy through a remote."""
    repo.set_remote("origin", bare_remote)
    (repo.path / "file.txt").write_text("v1\n")
    repo.add_all(repo.path)
    repo.commit("v1")
    repo.push("origin", "main")

    other = GitRepository(tmp_path / "other")
    other.init("main")
    other.set_remote("origin", bare_remote)
    other.fetch("origin")
    other.reset_hard("origin/main")

    assert (other.path / "file.txt").read_text() == "v1\n"


def test_git_error(repo: GitRepository) -> None:
    """Test that failing commands raise GitError with their output."""
    with pytest.raises(GitError) as exc_info:
        repo.reset_hard("origin/does-not-exist")

    assert exc_info.value.command == "git reset --hard origin/does-not-exist"
    assert exc_info.value.output
    assert exc_info.value.output in str(exc_info.value)
