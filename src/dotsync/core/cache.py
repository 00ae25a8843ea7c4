"""Mirror tracked files into the local cache and back.

Each tracked record owns one slot in the cache root, named after its id:

    ~/.dot-sync/files/
        1            <- copy of ~/.bashrc
        2/           <- copy of ~/.config/nvim/ (without any .git directory)
        manifest.yaml

Copying into the cache is called *materializing*; copying out of it is
*restoring*. Failures are reported per record so one unreadable file never
stops the rest of a sync or pull.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Set, Tuple, Union

import yaml
from rich.console import Console

from .errors import CopyFailed, DotSyncError, SourceNotFound
from .paths import PathCodec
from .store import TrackedFile

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.yaml"
DEFAULT_EXCLUDE_PATTERNS = (".git",)


@dataclass
class SyncReport:
    """Outcome of a materialize or restore pass."""

    succeeded: List[TrackedFile] = field(default_factory=list)
    skipped: List[TrackedFile] = field(default_factory=list)
    failed: List[Tuple[TrackedFile, str]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


def _remove(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    else:
        path.unlink()


class CacheSynchronizer:
    """Copies tracked paths to and from their cache slots.

    Attributes:
        cache_root (Path): Directory holding one slot per tracked id.
        exclude_patterns (Sequence[str]): Glob patterns skipped at any depth
            when copying directory trees.
        console (Console): Rich console for warnings and progress.
    """

    def __init__(
        self,
        cache_root: Union[str, Path],
        exclude_patterns: Sequence[str] = DEFAULT_EXCLUDE_PATTERNS,
        console: Optional[Console] = None,
    ) -> None:
        """Initialize the synchronizer."""
        self.cache_root = Path(cache_root)
        self.exclude_patterns = tuple(exclude_patterns)
        self.console = console or Console()

    def slot_path(self, record: TrackedFile) -> Path:
        """Return the cache slot for a record."""
        return self.cache_root / str(record.id)

    def _ignore(self):
        excluded = shutil.ignore_patterns(*self.exclude_patterns)
        cache_root = self.cache_root.resolve()

        # A tracked directory that contains the cache must not copy it into itself
        def ignore(directory: str, names: List[str]) -> Set[str]:
            ignored = set(excluded(directory, names))
            if cache_root.name in names and Path(directory).resolve() == cache_root.parent:
                ignored.add(cache_root.name)
            return ignored

        return ignore

    def materialize(self, record: TrackedFile) -> Path:
        """Copy a tracked path into its cache slot, replacing what was there.

        Directories are copied recursively without excluded entries such as
        ``.git``. Partial copies are left in place if copying fails.

        Raises:
            SourceNotFound: If the tracked path does not exist.
            CopyFailed: On any I/O error while copying, or if the path lies inside
                the cache. A tracked directory that contains the cache is copied
                without it.
        """
        source = Path(record.path)
        slot = self.slot_path(record)
        if not source.exists():
            raise SourceNotFound(f"{record.path} does not exist")
        cache_root = self.cache_root.resolve()
        resolved = source.resolve()
        if resolved == cache_root or cache_root in resolved.parents:
            raise CopyFailed(f"{record.path} is inside the cache at {self.cache_root}")

        try:
            if slot.exists() or slot.is_symlink():
                _remove(slot)
            slot.parent.mkdir(parents=True, exist_ok=True)
            if source.is_dir():
                shutil.copytree(
                    source,
                    slot,
                    ignore=self._ignore(),
                    ignore_dangling_symlinks=True,
                )
            else:
                shutil.copy2(source, slot)
        except OSError as e:
            raise CopyFailed(f"failed to copy {record.path} to {slot}: {e}") from e

        logger.debug("Materialized %s -> %s", record.path, slot)
        return slot

    def restore(self, record: TrackedFile) -> bool:
        """Copy a cache slot back to the record's original location.

        Returns:
            True if the record was restored, False if its slot is missing.

        Raises:
            CopyFailed: On any I/O error while copying, or if a file slot would
                land inside a directory now at the tracked path.
        """
        slot = self.slot_path(record)
        if not slot.exists():
            self.console.print(
                f"[yellow]Warning: File with ID {record.id} not found in storage, "
                f"skipping {record.path}"
            )
            return False

        destination = Path(record.path)
        if slot.is_file() and destination.is_dir():
            raise CopyFailed(f"{record.path} is a directory but was stored as a file")
        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            if slot.is_dir():
                shutil.copytree(slot, destination, ignore=self._ignore(), dirs_exist_ok=True)
            else:
                shutil.copy2(slot, destination)
        except OSError as e:
            raise CopyFailed(f"failed to restore {record.path} from {slot}: {e}") from e

        logger.debug("Restored %s <- %s", record.path, slot)
        return True

    def remove_slot(self, record: TrackedFile) -> bool:
        """Delete a record's cache slot.

        Returns:
            True if a slot was removed, False if it was already absent.

        Raises:
            CopyFailed: If the slot exists but cannot be removed.
        """
        slot = self.slot_path(record)
        if not slot.exists() and not slot.is_symlink():
            return False
        try:
            _remove(slot)
        except OSError as e:
            raise CopyFailed(f"failed to remove {slot}: {e}") from e
        return True

    def materialize_all(self, records: Iterable[TrackedFile]) -> SyncReport:
        """Materialize every record, collecting failures instead of stopping."""
        report = SyncReport()
        for record in records:
            try:
                self.materialize(record)
            except DotSyncError as e:
                self.console.print(f"[red]Failed to copy {record.path}: {e}")
                report.failed.append((record, str(e)))
            else:
                report.succeeded.append(record)
        return report

    def restore_all(self, records: Iterable[TrackedFile]) -> SyncReport:
        """Restore every record, skipping missing slots and collecting failures."""
        report = SyncReport()
        for record in records:
            try:
                restored = self.restore(record)
            except DotSyncError as e:
                self.console.print(f"[red]Failed to restore {record.path}: {e}")
                report.failed.append((record, str(e)))
                continue
            if restored:
                self.console.print(f"[green]✓ Restored: {record.path}")
                report.succeeded.append(record)
            else:
                report.skipped.append(record)
        return report

    @property
    def manifest_path(self) -> Path:
        return self.cache_root / MANIFEST_NAME

    def write_manifest(self, records: Iterable[TrackedFile], codec: PathCodec) -> Path:
        """Write the tracked set in portable form next to the slots."""
        entries = [{"id": r.id, "path": codec.encode(r.path)} for r in records]
        try:
            self.cache_root.mkdir(parents=True, exist_ok=True)
            with open(self.manifest_path, "w") as f:
                yaml.safe_dump({"files": entries}, f, sort_keys=False)
        except OSError as e:
            raise CopyFailed(f"failed to write {self.manifest_path}: {e}") from e
        return self.manifest_path

    def read_manifest(self, codec: PathCodec) -> List[TrackedFile]:
        """Read the tracked set published with the cache.

        Returns:
            The records in the manifest, decoded for this machine. An absent
            manifest yields an empty list.

        Raises:
            CopyFailed: If the manifest cannot be read or is malformed.
        """
        if not self.manifest_path.exists():
            return []
        try:
            with open(self.manifest_path, "r") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise CopyFailed(f"failed to read {self.manifest_path}: {e}") from e

        entries = data.get("files", []) if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise CopyFailed(f"{self.manifest_path} must contain a list of files")
        records = []
        for entry in entries:
            if (
                not isinstance(entry, dict)
                or not isinstance(entry.get("id"), int)
                or not isinstance(entry.get("path"), str)
            ):
                raise CopyFailed(f"invalid manifest entry: {entry!r}")
            records.append(TrackedFile(id=entry["id"], path=codec.decode(entry["path"])))
        return records

