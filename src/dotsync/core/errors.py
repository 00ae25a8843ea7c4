"""Error kinds raised by dot-sync."""


class DotSyncError(Exception):
    """Base class for dot-sync errors."""


class HomeDirUnresolved(DotSyncError):
    """The invoking user's home directory could not be determined."""


class StorageUnavailable(DotSyncError):
    """The record store could not be opened, queried or written."""


class NotConfigured(DotSyncError):
    """No remote storage provider has been set up."""


class SourceNotFound(DotSyncError):
    """A tracked path does not exist on disk."""


class CopyFailed(DotSyncError):
    """Copying between a tracked path and its cache slot failed."""


class InitializationFailed(DotSyncError):
    """The storage provider could not be initialized."""


class PushFailed(DotSyncError):
    """Publishing the cache to the remote failed."""


class PullFailed(DotSyncError):
    """Fetching the cache from the remote failed."""


class UnsupportedProvider(DotSyncError):
    """The requested storage provider kind is not supported."""

    def __init__(self, kind: str) -> None:
        """Initialize error."""
        super().__init__(f"unsupported storage provider: {kind}")
        self.kind = kind
