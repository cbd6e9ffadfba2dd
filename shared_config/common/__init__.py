"""
Common Utilities

Shared modules used across the store, backends and service:
- settings.py - Deployment settings and the built-in default map
- exceptions.py - Custom exception classes
- logging_setup.py - Structured logging setup
- scheduler.py - Cancellable interval loop
"""

from .settings import (
    StoreSettings,
    DEFAULT_CONFIG,
    load_settings,
)
from .exceptions import (
    SharedConfigError,
    ConfigError,
    BackendError,
    SnapshotError,
    CorruptValueError,
    SyncError,
)
from .logging_setup import (
    setup_logging,
    configure_logging,
    get_service_logger,
    log_change_batch,
)
from .scheduler import ScheduledLoop

__all__ = [
    # Settings
    "StoreSettings",
    "DEFAULT_CONFIG",
    "load_settings",
    # Exceptions
    "SharedConfigError",
    "ConfigError",
    "BackendError",
    "SnapshotError",
    "CorruptValueError",
    "SyncError",
    # Logging
    "setup_logging",
    "configure_logging",
    "get_service_logger",
    "log_change_batch",
    # Scheduling
    "ScheduledLoop",
]
