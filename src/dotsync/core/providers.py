"""Remote storage providers.

A provider publishes the local cache to a remote and brings it back. Providers
are structural: anything with the methods of :class:`StorageProvider` can be
used, and the configured one is picked from :data:`PROVIDERS` by its kind.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Union, runtime_checkable

from rich.console import Console

from .config import Config
from .errors import (
    InitializationFailed,
    NotConfigured,
    PullFailed,
    PushFailed,
    StorageUnavailable,
    UnsupportedProvider,
)
from .repository import GitError, GitRepository
from .store import ProviderConfig, RecordStore

logger = logging.getLogger(__name__)


@runtime_checkable
class StorageProvider(Protocol):
    """Capability interface for a remote copy of the cache root."""

    kind: str

    def initialize_storage(self) -> None:
        """Prepare the backend for first use and record it in the store."""
        ...

    def push_to_storage(self, cache_root: Path) -> None:
        """Replace the remote copy with the contents of ``cache_root``."""
        ...

    def pull_from_storage(self, cache_root: Path) -> None:
        """Replace the contents of ``cache_root`` with the remote copy."""
        ...


class GitStorageProvider:
    """Stores the cache in a git remote.

    The working copy lives in ``repo_dir`` and the cache root is a directory
    inside it. Only the cache root is staged on push and cleaned on pull, so
    the record store next to it stays local.

    Attributes:
        remote_url (str): Remote to push to and fetch from.
        repository (GitRepository): Local working copy.
        store (RecordStore): Store the configuration is persisted to.
        branch (str): Branch used when HEAD cannot be determined.
    """

    kind = "git"
    remote_name = "origin"

    def __init__(
        self,
        remote_url: str,
        repo_dir: Union[str, Path],
        store: RecordStore,
        branch: str = "main",
        commit_message: str = "sync: update dotfiles",
        force_push: bool = True,
        console: Optional[Console] = None,
    ) -> None:
        """Initialize the provider. No git command runs until an operation is called."""
        self.remote_url = remote_url
        self.repository = GitRepository(repo_dir)
        self.store = store
        self.branch = branch
        self.commit_message = commit_message
        self.force_push = force_push
        self.console = console or Console()

    def __repr__(self) -> str:
        return f"GitStorageProvider({self.remote_url!r}, {self.repository.path})"

    def _current_branch(self) -> str:
        try:
            return self.repository.get_current_branch() or self.branch
        except GitError:
            return self.branch

    def initialize_storage(self) -> None:
        """Create the working copy, bind it to the remote and save the configuration.

        Running it again with the same or a new URL is safe; an existing
        ``origin`` is repointed instead of failing.

        Raises:
            InitializationFailed: If git or the store fails.
        """
        try:
            self.repository.init(self.branch)
            self.repository.set_remote(self.remote_name, self.remote_url)
        except (GitError, OSError) as e:
            raise InitializationFailed(f"failed to initialize git storage: {e}") from e

        try:
            self.store.ensure_schema()
            try:
                self.store.get_current_provider()
            except NotConfigured:
                self.store.insert_provider(self.kind, self.remote_url)
            else:
                self.store.update_provider(self.kind, self.remote_url)
        except StorageUnavailable as e:
            raise InitializationFailed(f"failed to save storage provider: {e}") from e

        logger.debug(
            "Git storage initialized at %s -> %s", self.repository.path, self.remote_url
        )

    def push_to_storage(self, cache_root: Path) -> None:
        """Commit the cache root and force-push it.

        Raises:
            PushFailed: If staging, committing or pushing fails.
        """
        self.console.print("Pushing contents to storage...")
        try:
            self.repository.add_all(Path(cache_root))
            if not self.repository.commit(self.commit_message):
                logger.debug("Nothing new to commit in %s", cache_root)
            self.repository.push(self.remote_name, self._current_branch(), force=self.force_push)
        except (GitError, OSError) as e:
            raise PushFailed(f"failed to push to {self.remote_url}: {e}") from e

    def pull_from_storage(self, cache_root: Path) -> None:
        """Reset the cache root to the remote, dropping local changes.

        Raises:
            PullFailed: If fetching, resetting or cleaning fails.
        """
        self.console.print("Pulling contents from storage...")
        branch = self._current_branch()
        try:
            self.repository.fetch(self.remote_name)
            self.repository.reset_hard(f"{self.remote_name}/{branch}")
            Path(cache_root).mkdir(parents=True, exist_ok=True)
            self.repository.clean(Path(cache_root))
        except (GitError, OSError) as e:
            raise PullFailed(f"failed to pull from {self.remote_url}: {e}") from e


ProviderFactory = Callable[[str, RecordStore, Config, Console], StorageProvider]


def _git_provider(
    location: str, store: RecordStore, config: Config, console: Console
) -> StorageProvider:
    return GitStorageProvider(
        remote_url=location,
        repo_dir=config.state_path,
        store=store,
        branch=config.git["branch"],
        commit_message=config.git["commit_message"],
        force_push=config.git["force_push"],
        console=console,
    )


PROVIDERS: Dict[str, ProviderFactory] = {
    "git": _git_provider,
}


def create_provider(
    provider_config: ProviderConfig,
    store: RecordStore,
    config: Config,
    console: Optional[Console] = None,
) -> StorageProvider:
    """Build the provider for a persisted configuration.

    Raises:
        UnsupportedProvider: If no provider is registered for the kind.
    """
    factory = PROVIDERS.get(provider_config.kind)
    if factory is None:
        raise UnsupportedProvider(provider_config.kind)
    return factory(provider_config.location, store, config, console or Console())
