"""
Shared Config Store

Reactive configuration shared between isolated processes:
- common/ - settings, logging, exceptions, scheduler
- storage/ - persistence backends (memory, file)
- services/config/ - the store, sync strategies and background service
"""

from .common.settings import DEFAULT_CONFIG, StoreSettings, load_settings
from .services.config import (
    ConfigService,
    ConfigStore,
    EventDrivenSync,
    Lookup,
    LookupStatus,
    PolledSync,
    RemoteSnapshotClient,
    StoreState,
    Subscription,
    compute_change_batch,
)
from .storage import FileBackend, MemoryBackend, StorageBackend

__version__ = "1.0.0"

__all__ = [
    "ConfigStore",
    "ConfigService",
    "RemoteSnapshotClient",
    "EventDrivenSync",
    "PolledSync",
    "Lookup",
    "LookupStatus",
    "StoreState",
    "Subscription",
    "compute_change_batch",
    "StorageBackend",
    "MemoryBackend",
    "FileBackend",
    "StoreSettings",
    "DEFAULT_CONFIG",
    "load_settings",
]
