"""Persistent record store for tracked files and the storage provider.

The store is a single SQLite file with two tables:

- ``files``: one row per tracked path, keyed by an ``AUTOINCREMENT`` id that is
  never reused. The id addresses the file's slot in the local cache.
- ``remote_provider``: a keyed singleton (``id = 1``) holding the configured
  remote backend.

Paths cross the store boundary as absolute machine paths and are persisted in
the portable form produced by :class:`~dotsync.core.paths.PathCodec`.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Union

from .errors import NotConfigured, StorageUnavailable
from .paths import PathCodec

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    path TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS remote_provider (
    id INTEGER PRIMARY KEY CHECK (id = 1),
    storage_type TEXT NOT NULL,
    remote TEXT NOT NULL
);
"""

# Earlier releases appended one storage_provider row per change and treated
# the newest one as current.
LEGACY_PROVIDER_TABLE = "storage_provider"


@dataclass(frozen=True)
class TrackedFile:
    """A tracked file or directory."""

    id: int
    path: str


@dataclass(frozen=True)
class ProviderConfig:
    """The configured remote storage backend."""

    kind: str
    location: str


class RecordStore:
    """SQLite-backed store of tracked files and provider configuration.

    Every SQLite failure, including use of a closed store, surfaces as
    :class:`StorageUnavailable`. Batch operations run in a single transaction
    and leave no partial effect when they fail.

    Attributes:
        db_path (Path): Location of the database file.
        codec (PathCodec): Codec used to persist paths in portable form.
    """

    def __init__(self, db_path: Union[str, Path], codec: Optional[PathCodec] = None) -> None:
        """Initialize the store. The database is opened on first use."""
        self.db_path = Path(db_path)
        self.codec = codec or PathCodec.from_environment()
        self._connection: Optional[sqlite3.Connection] = None
        self._closed = False

    def __enter__(self) -> "RecordStore":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def connect(self) -> sqlite3.Connection:
        """Open the database connection if it is not open yet."""
        if self._closed:
            raise StorageUnavailable(f"record store {self.db_path} is closed")
        if self._connection is None:
            try:
                self._connection = sqlite3.connect(str(self.db_path))
            except sqlite3.Error as e:
                raise StorageUnavailable(f"failed to open {self.db_path}: {e}") from e
            self._connection.row_factory = sqlite3.Row
            logger.debug("Opened record store %s", self.db_path)
        return self._connection

    def close(self) -> None:
        """Close the connection. The store cannot be used afterwards."""
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        self._closed = True

    @contextmanager
    def _guard(self, action: str) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        except sqlite3.Error as e:
            raise StorageUnavailable(f"failed to {action}: {e}") from e

    @contextmanager
    def _transaction(self, action: str) -> Iterator[sqlite3.Connection]:
        with self._guard(action) as conn:
            with conn:
                yield conn

    def ensure_schema(self) -> None:
        """Create the tables if they are missing. Safe to call on every start."""
        with self._guard("create schema") as conn:
            conn.executescript(SCHEMA)
            self._migrate_legacy_provider(conn)

    def _migrate_legacy_provider(self, conn: sqlite3.Connection) -> None:
        legacy = conn.execute(
            "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?",
            (LEGACY_PROVIDER_TABLE,),
        ).fetchone()
        if legacy is None:
            return
        if conn.execute("SELECT 1 FROM remote_provider").fetchone() is not None:
            return
        row = conn.execute(
            f"SELECT storage_type, remote FROM {LEGACY_PROVIDER_TABLE} ORDER BY id DESC LIMIT 1"
        ).fetchone()
        if row is None:
            return
        with conn:
            conn.execute(
                "INSERT INTO remote_provider (id, storage_type, remote) VALUES (1, ?, ?)",
                (row["storage_type"], row["remote"]),
            )
        logger.info("Migrated storage provider '%s' from legacy table", row["storage_type"])

    def _to_record(self, row: sqlite3.Row) -> TrackedFile:
        return TrackedFile(id=row["id"], path=self.codec.decode(row["path"]))

    def _normalize(self, path: str) -> str:
        return self.codec.decode(self.codec.encode(path))

    def insert(self, path: str) -> TrackedFile:
        """Track a single path."""
        with self._transaction("insert file") as conn:
            cursor = conn.execute(
                "INSERT INTO files (path) VALUES (?)", (self.codec.encode(path),)
            )
            return TrackedFile(id=cursor.lastrowid, path=self._normalize(path))

    def insert_many(self, paths: Iterable[str]) -> List[TrackedFile]:
        """Track several paths in one all-or-nothing transaction."""
        paths = list(paths)
        if not paths:
            return []
        records = []
        with self._transaction("insert files") as conn:
            for path in paths:
                cursor = conn.execute(
                    "INSERT INTO files (path) VALUES (?)", (self.codec.encode(path),)
                )
                records.append(TrackedFile(id=cursor.lastrowid, path=self._normalize(path)))
        return records

    def adopt(self, records: Iterable[TrackedFile]) -> List[TrackedFile]:
        """Insert records under their existing ids.

        Ids already present in the store are left untouched. Used to take over
        the tracked set published by another machine.

        Returns:
            The records that were newly added.
        """
        records = list(records)
        if not records:
            return []
        adopted = []
        with self._transaction("adopt files") as conn:
            for record in records:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO files (id, path) VALUES (?, ?)",
                    (record.id, self.codec.encode(record.path)),
                )
                if cursor.rowcount:
                    adopted.append(record)
        return adopted

    def list_all(self) -> List[TrackedFile]:
        """Return every tracked file with its absolute path."""
        with self._guard("read files") as conn:
            rows = conn.execute("SELECT id, path FROM files ORDER BY id").fetchall()
        return [self._to_record(row) for row in rows]

    def find_by_paths(self, paths: Iterable[str]) -> List[TrackedFile]:
        """Return the records whose path matches one of ``paths``."""
        storage_paths = sorted({self.codec.encode(path) for path in paths})
        if not storage_paths:
            return []
        placeholders = ",".join("?" for _ in storage_paths)
        with self._guard("query files") as conn:
            rows = conn.execute(
                f"SELECT id, path FROM files WHERE path IN ({placeholders}) ORDER BY id",
                storage_paths,
            ).fetchall()
        return [self._to_record(row) for row in rows]

    def delete_by_ids(self, ids: Iterable[int]) -> None:
        """Stop tracking the given ids in one transaction. Unknown ids are ignored."""
        ids = list(ids)
        if not ids:
            return
        with self._transaction("delete files") as conn:
            conn.executemany("DELETE FROM files WHERE id = ?", [(i,) for i in ids])

    def get_current_provider(self) -> ProviderConfig:
        """Return the configured provider.

        Raises:
            NotConfigured: If no provider has been set up.
        """
        with self._guard("read storage provider") as conn:
            row = conn.execute(
                "SELECT storage_type, remote FROM remote_provider WHERE id = 1"
            ).fetchone()
        if row is None:
            raise NotConfigured("no storage provider configured")
        return ProviderConfig(kind=row["storage_type"], location=row["remote"])

    def insert_provider(self, kind: str, location: str) -> None:
        """Record the provider configuration. Fails if one already exists."""
        with self._transaction("insert storage provider") as conn:
            conn.execute(
                "INSERT INTO remote_provider (id, storage_type, remote) VALUES (1, ?, ?)",
                (kind, location),
            )

    def update_provider(self, kind: str, location: str) -> None:
        """Overwrite the provider configuration.

        Raises:
            NotConfigured: If there is no configuration to update.
        """
        with self._transaction("update storage provider") as conn:
            cursor = conn.execute(
                "UPDATE remote_provider SET storage_type = ?, remote = ? WHERE id = 1",
                (kind, location),
            )
        if cursor.rowcount == 0:
            raise NotConfigured("no storage provider configured")

    def set_provider(self, kind: str, location: str) -> None:
        """Insert or overwrite the provider configuration."""
        with self._transaction("set storage provider") as conn:
            conn.execute(
                "INSERT INTO remote_provider (id, storage_type, remote) VALUES (1, ?, ?) "
                "ON CONFLICT(id) DO UPDATE SET storage_type = excluded.storage_type, "
                "remote = excluded.remote",
                (kind, location),
            )
