"""
Config Service - Shared Configuration Store

Responsibilities:
- Keep an in-memory mirror of the persisted configuration per context
- Notify key, any-change and conditional listeners precisely
- Sync with other contexts by backend notification or snapshot polling
- Serve the snapshot endpoint from the background context
"""

from .diff import compute_change_batch
from .listeners import Subscription
from .store import ConfigStore, Lookup, LookupStatus, StoreState
from .sync import EventDrivenSync, PolledSync, RemoteSnapshotClient
from .service import ConfigService

__all__ = [
    "ConfigStore",
    "ConfigService",
    "Lookup",
    "LookupStatus",
    "StoreState",
    "Subscription",
    "EventDrivenSync",
    "PolledSync",
    "RemoteSnapshotClient",
    "compute_change_batch",
]
