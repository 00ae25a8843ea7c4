"""Core functionality for dot-sync."""

from .cache import CacheSynchronizer, SyncReport
from .config import Config
from .paths import PathCodec
from .providers import GitStorageProvider, StorageProvider
from .store import ProviderConfig, RecordStore, TrackedFile

__all__ = [
    "CacheSynchronizer",
    "Config",
    "GitStorageProvider",
    "PathCodec",
    "ProviderConfig",
    "RecordStore",
    "StorageProvider",
    "SyncReport",
    "TrackedFile",
]
