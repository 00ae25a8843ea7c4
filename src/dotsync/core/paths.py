"""Portable path handling for tracked files.

Tracked paths are persisted in a machine-independent "storage" form: anything
under the user's home directory is rewritten relative to a literal ``HOME``
token. Decoding substitutes the *current* machine's home directory, so a
record written as ``/home/alice/.bashrc`` on one machine restores to
``/Users/alice/.bashrc`` on another.

Example:
    ```python
    codec = PathCodec("/home/alice")
    codec.encode("/home/alice/.bashrc")   # "HOME/.bashrc"
    PathCodec("/Users/alice").decode("HOME/.bashrc")  # "/Users/alice/.bashrc"
    ```
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

from .errors import HomeDirUnresolved

HOME_TOKEN = "HOME"


def find_home_dir() -> Optional[str]:
    """Return the invoking user's home directory, or None if it cannot be found."""
    home = os.environ.get("HOME")
    if home:
        return home
    try:
        return str(Path.home())
    except RuntimeError:
        return None


def require_home_dir() -> str:
    """Return the home directory or raise HomeDirUnresolved."""
    home = find_home_dir()
    if not home:
        raise HomeDirUnresolved("could not determine home directory")
    return home


def _home_prefix(home: str) -> str:
    return home if home.endswith(os.sep) else home + os.sep


def encode_path(path: str, home: Optional[str]) -> str:
    """Convert an absolute path into its portable storage form.

    Args:
        path: Absolute machine path.
        home: Home directory to abbreviate. If None the path is returned as is.

    Returns:
        ``HOME`` for the home directory itself, ``HOME/<rest>`` for paths under
        it, and the unchanged input for everything else.
    """
    if not home:
        return path
    normalized = os.path.normpath(path)
    normalized_home = os.path.normpath(home)
    if normalized == normalized_home:
        return HOME_TOKEN
    prefix = _home_prefix(normalized_home)
    if normalized.startswith(prefix):
        return HOME_TOKEN + "/" + normalized[len(prefix) :].replace(os.sep, "/")
    return path


def decode_path(storage_path: str, home: Optional[str]) -> str:
    """Convert a storage path back into an absolute path for this machine."""
    if not home:
        return storage_path
    if storage_path == HOME_TOKEN:
        return os.path.normpath(home)
    for sep in {"/", os.sep}:
        if storage_path.startswith(HOME_TOKEN + sep):
            rest = storage_path[len(HOME_TOKEN) + 1 :]
            return os.path.join(os.path.normpath(home), *rest.split("/"))
    return storage_path


@dataclass(frozen=True)
class PathCodec:
    """Encode and decode paths against a fixed home directory."""

    home: Optional[str]

    @classmethod
    def from_environment(cls) -> "PathCodec":
        """Build a codec for the current user's home directory."""
        return cls(find_home_dir())

    def encode(self, path: str) -> str:
        return encode_path(path, self.home)

    def decode(self, storage_path: str) -> str:
        return decode_path(storage_path, self.home)


def resolve_user_paths(
    args: Iterable[str],
    cwd: Optional[str] = None,
    home: Optional[str] = None,
) -> List[str]:
    """Turn command line arguments into absolute, normalized paths.

    Relative arguments are resolved against ``cwd`` (the process working
    directory by default). If the working directory cannot be determined the
    home directory is used instead. Symlinks are left unresolved.
    """
    if cwd is None:
        try:
            cwd = os.getcwd()
        except OSError:
            cwd = None
    base = cwd or home or find_home_dir() or os.sep

    paths = []
    for arg in args:
        expanded = os.path.expanduser(arg)
        if not os.path.isabs(expanded):
            expanded = os.path.join(base, expanded)
        paths.append(os.path.normpath(expanded))
    return paths
