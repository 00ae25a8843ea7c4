"""Command line interface for dot-sync."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import NoReturn, Optional, Tuple

import click
from rich.console import Console

from .core.cache import CacheSynchronizer
from .core.commands import (
    delete_paths,
    init_storage,
    mark_paths,
    pull_files,
    show_tracked,
    sync_files,
)
from .core.config import Config
from .core.errors import (
    DotSyncError,
    InitializationFailed,
    NotConfigured,
    StorageUnavailable,
)
from .core.logging import setup_logging
from .core.paths import PathCodec, find_home_dir, require_home_dir, resolve_user_paths
from .core.providers import StorageProvider, create_provider
from .core.store import RecordStore

logger = logging.getLogger(__name__)

console = Console()


@dataclass
class Session:
    """Everything a command needs, built once per invocation."""

    config: Config
    codec: PathCodec
    store: RecordStore
    synchronizer: CacheSynchronizer
    provider: Optional[StorageProvider] = None

    @classmethod
    def open(cls, home: str, console: Console) -> "Session":
        """Load the configuration for ``home`` and open its store and cache.

        Raises:
            StorageUnavailable: If the state directory or store cannot be used.
        """
        config = Config.for_home(home)
        for problem in config.validate():
            logger.warning("Invalid configuration: %s", problem)
        codec = PathCodec(home)
        try:
            config.cache_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"failed to create {config.cache_root}: {e}") from e
        store = RecordStore(config.database_path, codec)
        store.ensure_schema()
        synchronizer = CacheSynchronizer(config.cache_root, config.exclude_patterns, console)
        return cls(config=config, codec=codec, store=store, synchronizer=synchronizer)

    def close(self) -> None:
        self.store.close()


def _fail(error: Exception) -> NoReturn:
    console.print(f"[red]Error: {error}")
    raise click.Abort()


def _session(ctx: click.Context) -> Session:
    session = ctx.find_object(Session)
    if session is None:
        raise click.UsageError("No dot-sync session; run commands through dot-sync", ctx)
    return session


def _provider(session: Session) -> StorageProvider:
    if session.provider is None:
        _fail(NotConfigured("No storage provider configured. Please run: dot-sync storage init"))
    return session.provider


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Also write debug logs to this file",
)
@click.version_option(package_name="dot-sync")
@click.pass_context
def cli(ctx: click.Context, debug: bool, log_file: Optional[str]) -> None:
    """Dotfile syncing tool.

    dot-sync keeps a list of tracked files and directories, copies them into a
    local cache under ~/.dot-sync/files and mirrors that cache with a remote
    storage provider so the same files can be restored on another machine.

    Main commands:

      mark      Track files or directories
      show      List tracked files
      sync      Copy tracked files into the cache and push it
      pull      Pull the cache and restore tracked files
      delete    Stop tracking files
      storage   Manage the remote storage provider

    Run 'dot-sync storage init --provider git --remote-url URL' first.
    """
    setup_logging(debug=debug, log_file=log_file)

    # storage init sets up its own state and may run before anything exists
    if ctx.invoked_subcommand == "storage":
        return

    try:
        home = require_home_dir()
        session = Session.open(home, console)
    except DotSyncError as e:
        _fail(e)
    ctx.call_on_close(session.close)

    if session.config.log_file and not log_file:
        setup_logging(debug=debug, log_file=session.config.log_file)

    try:
        provider_config = session.store.get_current_provider()
        session.provider = create_provider(
            provider_config, session.store, session.config, console
        )
    except NotConfigured:
        console.print("[red]No storage provider configured. Please run: dot-sync storage init")
        ctx.exit(1)
    except DotSyncError as e:
        _fail(e)

    ctx.obj = session


@cli.command()
@click.argument("paths", nargs=-1, type=click.Path())
@click.pass_context
def mark(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Mark files or directories for syncing.

    PATHS may be absolute or relative to the current directory. Paths under
    your home directory are stored relative to it so they restore correctly
    on machines with a different home directory.

    Examples:

      dot-sync mark ~/.bashrc ~/.config/nvim
    """
    session = _session(ctx)
    try:
        mark_paths(session.store, resolve_user_paths(paths, home=session.codec.home), console)
    except DotSyncError as e:
        _fail(e)


@cli.command()
@click.pass_context
def show(ctx: click.Context) -> None:
    """Show the paths of all files currently tracked for syncing."""
    session = _session(ctx)
    try:
        show_tracked(session.store, console)
    except DotSyncError as e:
        _fail(e)


@cli.command()
@click.pass_context
def sync(ctx: click.Context) -> None:
    """Sync tracked files to remote storage.

    Every tracked path is copied into its slot in the local cache, then the
    whole cache is pushed, replacing what the remote had.
    """
    session = _session(ctx)
    provider = _provider(session)
    try:
        sync_files(session.store, session.synchronizer, provider, session.codec, console)
    except DotSyncError as e:
        _fail(e)


@cli.command()
@click.option(
    "--adopt",
    is_flag=True,
    help="Also track files published by other machines that are not tracked here yet",
)
@click.pass_context
def pull(ctx: click.Context, adopt: bool) -> None:
    """Pull tracked files from remote storage.

    The local cache is reset to the remote copy, discarding anything not yet
    pushed, and every tracked path is restored from it. Files missing from the
    cache are skipped with a warning.

    Examples:

      # Restore on a new machine, taking over the tracked set
      dot-sync pull --adopt
    """
    session = _session(ctx)
    provider = _provider(session)
    try:
        pull_files(
            session.store,
            session.synchronizer,
            provider,
            session.codec,
            console,
            adopt=adopt,
        )
    except DotSyncError as e:
        _fail(e)


@cli.command()
@click.argument("paths", nargs=-1, required=True, type=click.Path())
@click.pass_context
def delete(ctx: click.Context, paths: Tuple[str, ...]) -> None:
    """Delete files from sync tracking and remove them from the cache.

    The files themselves are left untouched.
    """
    session = _session(ctx)
    try:
        delete_paths(
            session.store,
            session.synchronizer,
            resolve_user_paths(paths, home=session.codec.home),
            console,
        )
    except DotSyncError as e:
        _fail(e)


@cli.group()
def storage() -> None:
    """Manage dotfile storage backends."""


@storage.command("init")
@click.option(
    "--provider",
    "provider_kind",
    default="git",
    show_default=True,
    help="Storage provider to use (git)",
)
@click.option("--remote-url", help="Remote URL for the git storage provider")
def storage_init(provider_kind: str, remote_url: Optional[str]) -> None:
    """Initialize the backend storage provider.

    Running it again replaces the configured remote.

    Examples:

      dot-sync storage init --provider git --remote-url git@github.com:me/dotfiles.git
    """
    home = find_home_dir()
    try:
        if not home:
            raise InitializationFailed("could not determine home directory")
        session = Session.open(home, console)
    except DotSyncError as e:
        _fail(e)
    try:
        init_storage(provider_kind, remote_url, session.store, session.config, console)
    except DotSyncError as e:
        _fail(e)
    finally:
        session.close()


def main() -> None:
    """Entry point for the dot-sync CLI."""
    cli()


if __name__ == "__main__":
    main()
