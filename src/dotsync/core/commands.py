"""Command flows for dot-sync.

Every flow takes its collaborators as arguments: the record store, the cache
synchronizer, the storage provider and the console to report on. The CLI
builds them once per invocation and hands them in.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from rich.console import Console
from rich.table import Table

from .cache import CacheSynchronizer, SyncReport
from .config import Config
from .errors import DotSyncError, InitializationFailed, UnsupportedProvider
from .paths import PathCodec
from .providers import PROVIDERS, StorageProvider
from .store import RecordStore, TrackedFile

logger = logging.getLogger(__name__)


@dataclass
class DeleteReport:
    """Outcome of a delete run."""

    deleted: List[TrackedFile] = field(default_factory=list)
    missing_slots: List[TrackedFile] = field(default_factory=list)
    failed: List[Tuple[TrackedFile, str]] = field(default_factory=list)


def mark_paths(store: RecordStore, paths: List[str], console: Console) -> List[TrackedFile]:
    """Start tracking ``paths``."""
    if not paths:
        console.print("No changes.")
        return []
    records = store.insert_many(paths)
    console.print("[bold]Marked entries for syncing:")
    for record in records:
        console.print(f"  [green]+[/green] {record.path}")
    return records


def show_tracked(store: RecordStore, console: Console) -> List[TrackedFile]:
    """Print every tracked path."""
    records = store.list_all()
    if not records:
        console.print("[yellow]No files currently tracked for syncing.")
        return records

    console.print(f"[bold]Files currently tracked for syncing ({len(records)}):")
    table = Table(show_header=True, box=None)
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Path", style="green", overflow="fold")
    for record in records:
        table.add_row(str(record.id), record.path)
    console.print(table)
    return records


def _print_failures(console: Console, report: SyncReport, verb: str) -> None:
    if report.failed:
        console.print(f"[red]Failed to {verb} {len(report.failed)} file(s):")
        for record, error in report.failed:
            console.print(f"  [red]✗[/red] {record.path}: {error}")


def sync_files(
    store: RecordStore,
    synchronizer: CacheSynchronizer,
    provider: StorageProvider,
    codec: PathCodec,
    console: Console,
) -> SyncReport:
    """Copy every tracked path into the cache and push the cache.

    Files that cannot be copied are reported and left out; the push still
    happens for everything else.

    Raises:
        StorageUnavailable: If the store cannot be read.
        CopyFailed: If the manifest cannot be written.
        PushFailed: If the provider cannot publish the cache.
    """
    records = store.list_all()
    logger.debug("Syncing %d tracked file(s) into %s", len(records), synchronizer.cache_root)
    report = synchronizer.materialize_all(records)
    synchronizer.write_manifest(records, codec)
    provider.push_to_storage(synchronizer.cache_root)

    _print_failures(console, report, "copy")
    console.print(
        f"[green]Sync complete. {len(report.succeeded)} of {len(records)} file(s) synced."
    )
    return report


def pull_files(
    store: RecordStore,
    synchronizer: CacheSynchronizer,
    provider: StorageProvider,
    codec: PathCodec,
    console: Console,
    adopt: bool = False,
) -> SyncReport:
    """Pull the cache and restore every tracked path from it.

    Args:
        adopt: Also start tracking records listed in the pulled manifest that
            this machine does not know yet.

    Raises:
        StorageUnavailable: If the store cannot be read or written.
        PullFailed: If the provider cannot fetch the cache.
    """
    console.print("Pulling dotfiles...")
    synchronizer.cache_root.mkdir(parents=True, exist_ok=True)
    provider.pull_from_storage(synchronizer.cache_root)

    if adopt:
        adopted = store.adopt(synchronizer.read_manifest(codec))
        for record in adopted:
            console.print(f"  [green]+[/green] Now tracking {record.path}")

    records = store.list_all()
    if not records:
        console.print("[yellow]No files found in database. Nothing to pull.")
        return SyncReport()

    report = synchronizer.restore_all(records)
    _print_failures(console, report, "restore")
    if report.skipped:
        console.print(f"[yellow]Skipped {len(report.skipped)} file(s) missing from storage.")
    console.print("[green]Pull complete.")
    return report


def delete_paths(
    store: RecordStore,
    synchronizer: CacheSynchronizer,
    paths: Iterable[str],
    console: Console,
) -> DeleteReport:
    """Stop tracking ``paths`` and remove their cache slots.

    A slot that is already gone only produces a warning; the record is still
    removed. Records whose slot cannot be removed stay tracked.
    """
    report = DeleteReport()
    records = store.find_by_paths(paths)
    logger.debug("Found %d tracked record(s) to delete", len(records))
    if not records:
        console.print("[yellow]No matching files found in tracking database.")
        return report

    for record in records:
        try:
            removed = synchronizer.remove_slot(record)
        except DotSyncError as e:
            report.failed.append((record, str(e)))
            continue
        if not removed:
            console.print(
                f"[yellow]Warning: File with ID {record.id} not found in storage: {record.path}"
            )
            report.missing_slots.append(record)
        report.deleted.append(record)

    store.delete_by_ids([record.id for record in report.deleted])

    if report.deleted:
        console.print(f"[green]Successfully deleted {len(report.deleted)} file(s) from tracking:")
        for record in report.deleted:
            console.print(f"  [green]✓[/green] {record.path}")
    if report.failed:
        console.print(f"[red]Failed to delete {len(report.failed)} file(s):")
        for record, error in report.failed:
            console.print(f"  [red]✗[/red] {record.path}: {error}")
    return report


def init_storage(
    kind: str,
    location: Optional[str],
    store: RecordStore,
    config: Config,
    console: Console,
) -> StorageProvider:
    """Set up a storage provider and record it as the current one.

    Raises:
        UnsupportedProvider: If ``kind`` is not a known provider.
        InitializationFailed: If the location is missing or the backend fails.
    """
    factory = PROVIDERS.get(kind)
    if factory is None:
        raise UnsupportedProvider(kind)
    if not location:
        raise InitializationFailed(f"--remote-url is required for {kind} provider")

    provider = factory(location, store, config, console)
    provider.initialize_storage()
    console.print("[green]Storage initialized successfully.")
    return provider
