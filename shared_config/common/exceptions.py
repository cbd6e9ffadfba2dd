"""
Custom Exception Classes for the Shared Config Store

Hierarchical exception structure. Nothing here is meant to be fatal:
callers of the store see logged failures, not raised ones.
"""

from typing import Any


class SharedConfigError(Exception):
    """Base exception for all shared config errors"""

    def __init__(self, message: str, recoverable: bool = True):
        self.message = message
        self.recoverable = recoverable
        super().__init__(message)


class ConfigError(SharedConfigError):
    """Invalid settings or misuse of the store"""

    def __init__(self, message: str, recoverable: bool = False):
        super().__init__(f"Config Error: {message}", recoverable)


class BackendError(SharedConfigError):
    """Persistence backend read/write failures"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"Backend Error: {message}", recoverable=True)


class SnapshotError(SharedConfigError):
    """Remote snapshot fetch/push failures and malformed snapshots"""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(f"Snapshot Error: {message}", recoverable=True)


class CorruptValueError(SharedConfigError):
    """Stored value is not a primitive config value"""

    def __init__(self, key: str, value: Any):
        self.key = key
        self.value = value
        super().__init__(
            f"Corrupt value for '{key}': {type(value).__name__} is not a config value",
            recoverable=True,
        )


class SyncError(SharedConfigError):
    """Synchronization errors"""

    def __init__(self, message: str, operation: str | None = None):
        self.operation = operation
        super().__init__(f"Sync Error: {message}", recoverable=True)
