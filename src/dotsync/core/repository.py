"""Git working copy used by the git storage provider."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Optional, Union


class GitError(Exception):
    """Git error class."""

    def __init__(self, message: str, command: str, output: str) -> None:
        """Initialize error."""
        super().__init__(f"{message}: {output}" if output else message)
        self.command = command
        self.output = output


class GitRepository:
    """Represents the git working copy that backs the dotfile cache.

    This class wraps the handful of git operations the storage provider needs:
    initialization, remote management, staging and committing the cache, and
    the push/fetch/reset cycle used to mirror it with the remote.

    Attributes:
        path (Path): Path to the working copy.
    """

    def __init__(self, path: Union[str, Path]):
        """Initialize repository."""
        self.path = Path(path)

    def __str__(self) -> str:
        """Return string representation."""
        return f"GitRepository({self.path})"

    def __repr__(self) -> str:
        """Return string representation."""
        return self.__str__()

    def _run_git(self, *args: str, cwd: Optional[Path] = None) -> str:
        """Run a Git command and return its output.

        Args:
            *args: Arguments passed to ``git``.
            cwd: Directory to run in. Defaults to the repository root.

        Raises:
            GitError: If git exits with a non-zero status or cannot be started.
        """
        command = " ".join(["git", *args])
        try:
            result = subprocess.run(
                ["git", *args],
                cwd=cwd or self.path,
                capture_output=True,
                text=True,
                check=True,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            output = "\n".join(
                part.strip() for part in (e.stderr, e.stdout) if part and part.strip()
            )
            raise GitError("Git command failed", command, output) from e
        except OSError as e:
            raise GitError("Could not run git", command, str(e)) from e

    def exists(self) -> bool:
        """Check if the path is the top of a Git working copy."""
        return (self.path / ".git").exists()

    def init(self, branch: str) -> None:
        """Initialize the working copy if needed and point an unborn HEAD at ``branch``."""
        self.path.mkdir(parents=True, exist_ok=True)
        if not self.exists():
            self._run_git("init")
        if not self.has_commits():
            self._run_git("symbolic-ref", "HEAD", f"refs/heads/{branch}")

    def has_commits(self) -> bool:
        """Check whether HEAD points at a commit."""
        try:
            self._run_git("rev-parse", "--verify", "--quiet", "HEAD")
            return True
        except GitError:
            return False

    def set_remote(self, name: str, url: str) -> None:
        """Add a remote, or update its URL if it already exists."""
        try:
            self._run_git("remote", "add", name, url)
        except GitError as e:
            if "already exists" not in e.output:
                raise
            self._run_git("remote", "set-url", name, url)

    def get_remote_url(self, name: str = "origin") -> str:
        """Return the URL configured for a remote."""
        return self._run_git("remote", "get-url", name)

    def get_current_branch(self) -> str:
        """Get the current branch name, including an unborn one.

        Raises:
            GitError: If HEAD is detached or the lookup fails.
        """
        return self._run_git("symbolic-ref", "--short", "HEAD")

    def add_all(self, pathspec: Path) -> None:
        """Stage every change, addition and removal under ``pathspec``."""
        self._run_git("add", "-A", ".", cwd=pathspec)

    def commit(self, message: str) -> bool:
        """Commit staged changes.

        Returns:
            True if a commit was created, False if there was nothing to commit.

        Raises:
            GitError: If the commit fails for any other reason.
        """
        try:
            self._run_git("commit", "-m", message)
            return True
        except GitError as e:
            if "nothing to commit" in e.output or "nothing added to commit" in e.output:
                return False
            raise

    def push(self, remote: str, branch: str, force: bool = False) -> None:
        """Push ``branch`` to ``remote`` and set it as upstream."""
        args = ["push"]
        if force:
            args.append("--force")
        self._run_git(*args, "-u", remote, branch)

    def fetch(self, remote: str) -> None:
        """Fetch from ``remote``."""
        self._run_git("fetch", remote)

    def reset_hard(self, ref: str) -> None:
        """Reset the index and working tree to ``ref``."""
        self._run_git("reset", "--hard", ref)

    def clean(self, pathspec: Path) -> None:
        """Remove untracked files and directories under ``pathspec``."""
        self._run_git("clean", "-fd", ".", cwd=pathspec)
