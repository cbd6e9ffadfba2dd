"""
Config Store

In-memory mirror of a persisted configuration map, kept consistent with
other contexts (processes) that share the same settings.

Notification channels:
- key listeners: (key, new_value) when that key changes
- any listeners: () once per mutation event
- condition listeners: () when predicate(changed_keys) holds for a batch

Sync strategies:
- event-driven: backend change notifications (contexts with backend access)
- polled: periodic full snapshot fetch and diff (contexts with HTTP access only)
"""

import asyncio
import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Mapping, Union

from ...common.exceptions import BackendError, ConfigError, CorruptValueError, SnapshotError
from ...common.logging_setup import get_service_logger
from ...common.settings import DEFAULT_CONFIG
from ...storage.backend import StorageBackend
from .diff import compute_change_batch
from .listeners import (
    AnyListener,
    ConditionPredicate,
    KeyListener,
    ListenerRegistry,
    Subscription,
)
from .sync import EventDrivenSync, PolledSync, RemoteSnapshotClient
from .validator import is_config_value

logger = get_service_logger("config.store")

ConfigValue = Union[str, bool, int, float]
ConfigMap = dict[str, ConfigValue]


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"


class LookupStatus(str, Enum):
    FOUND = "found"
    ABSENT = "absent"
    CORRUPT = "corrupt"


@dataclass(frozen=True)
class Lookup:
    """Result of reading one key"""
    key: str
    status: LookupStatus
    value: ConfigValue | None = None
    error: CorruptValueError | None = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND

    def value_or(self, default: Any = None) -> Any:
        return self.value if self.found else default


class ConfigStore:
    """
    Reactive configuration store for one context.

    Construct once per process and pass it to whatever needs configuration.
    Without a usable backend the store seeds its defaults immediately and is
    ready at once. With a backend it starts empty and becomes ready when
    load_from_storage() completes; get() calls made before that honor the
    caller's default.
    """

    def __init__(
        self,
        backend: StorageBackend | None = None,
        defaults: Mapping[str, ConfigValue] | None = None,
        poll_interval_s: float = 1.0,
        remote: RemoteSnapshotClient | None = None,
        name: str = "config",
    ):
        if poll_interval_s <= 0:
            raise ConfigError(f"poll_interval_s must be positive, got {poll_interval_s}")

        self.name = name
        self.defaults: ConfigMap = dict(defaults if defaults is not None else DEFAULT_CONFIG)
        self.poll_interval_s = poll_interval_s
        self.remote = remote

        self._config: ConfigMap = {}
        self._listeners = ListenerRegistry()
        self._state = StoreState.UNINITIALIZED
        self._ready_event = asyncio.Event()
        self._pending_saves: set[asyncio.Task] = set()

        self._event_sync: EventDrivenSync | None = None
        self._polled_sync: PolledSync | None = None

        # Backend availability is decided once, here
        self.backend: StorageBackend | None = None
        if backend is not None and self._backend_available(backend):
            self.backend = backend
        else:
            if backend is not None:
                logger.info(f"Store '{name}': backend unavailable in this context, using defaults")
            self._config = dict(self.defaults)
            self._mark_ready("defaults")

    @staticmethod
    def _backend_available(backend: StorageBackend) -> bool:
        try:
            return bool(backend.is_available())
        except Exception as e:
            logger.warning(f"Backend availability check failed: {e}")
            return False

    def _mark_ready(self, source: str) -> None:
        if self._state is StoreState.READY:
            return
        self._state = StoreState.READY
        self._ready_event.set()
        logger.info(
            f"Store '{self.name}' ready from {source} ({len(self._config)} keys)",
            extra={"source": source, "key_count": len(self._config)},
        )

    # ----- Lifecycle -----

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is StoreState.READY

    async def wait_ready(self) -> None:
        await self._ready_event.wait()

    async def load_from_storage(self) -> None:
        """
        Seed the map from the backend.

        Falls back to the default map when nothing is persisted or the
        persisted entry cannot be read.
        """
        if self.backend is None:
            self._mark_ready("defaults")
            return

        try:
            snapshot = await self.backend.get_snapshot()
        except BackendError as e:
            logger.error(f"Failed to load config from storage, using defaults: {e}")
            snapshot = None

        if snapshot is not None and not isinstance(snapshot, Mapping):
            logger.error(f"Stored config is a {type(snapshot).__name__}, using defaults")
            snapshot = None

        if snapshot is None:
            self._config = dict(self.defaults)
            self._mark_ready("defaults")
        else:
            self._config = copy.deepcopy(dict(snapshot))
            self._mark_ready("storage")

    # ----- Data access -----

    def lookup(self, key: str) -> Lookup:
        """Read a key, telling absent and corrupt values apart"""
        if key not in self._config:
            return Lookup(key, LookupStatus.ABSENT)

        value = self._config[key]
        if not is_config_value(value):
            return Lookup(key, LookupStatus.CORRUPT, error=CorruptValueError(key, copy.deepcopy(value)))
        return Lookup(key, LookupStatus.FOUND, value=value)

    def get(self, key: str, default: Any = None) -> Any:
        """Current value for key, or default when absent or unreadable"""
        try:
            result = self.lookup(key)
        except Exception as e:
            logger.debug(f"Read of '{key}' failed: {e}")
            return default

        if result.status is LookupStatus.CORRUPT:
            logger.debug(f"Ignoring corrupt value for '{key}'")
        return result.value_or(default)

    def set(self, key: str, value: ConfigValue) -> None:
        """Write one key, then notify its key listeners and all any listeners"""
        if not is_config_value(value):
            raise TypeError(f"Config values must be str, bool, int or float, got {type(value).__name__}")

        self._config[key] = value
        self._emit_key(key, value)
        self._emit_any()

    def load(self, config: Mapping[str, ConfigValue]) -> None:
        """Replace the whole map (authoritative snapshot), then notify any listeners"""
        if not isinstance(config, Mapping):
            raise TypeError(f"Config snapshot must be a mapping, got {type(config).__name__}")

        self._config = copy.deepcopy(dict(config))
        self._emit_any()

    def snapshot(self) -> ConfigMap:
        """Deep copy of the current map"""
        return copy.deepcopy(self._config)

    def __contains__(self, key: str) -> bool:
        return key in self._config

    def __len__(self) -> int:
        return len(self._config)

    # ----- Persistence -----

    def save(self) -> asyncio.Task | None:
        """
        Persist the current map without waiting for it.

        Writes to the backend if this context has one, otherwise pushes to
        the remote endpoint. Failures are logged. The returned task resolves
        to True on success and False on a logged failure.
        """
        snapshot = self.snapshot()

        if self.backend is not None:
            coro = self._persist(snapshot)
        elif self.remote is not None:
            coro = self._push(snapshot)
        else:
            logger.warning(f"Store '{self.name}' has no backend or remote, config not saved")
            return None

        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.error("save() called without a running event loop, config not saved")
            return None

        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)
        return task

    async def _persist(self, snapshot: ConfigMap) -> bool:
        try:
            await self.backend.put_snapshot(snapshot)
        except BackendError as e:
            logger.error(f"Failed to save config: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error saving config: {e}", exc_info=True)
            return False

        logger.info("Saved config", extra={"key_count": len(snapshot)})
        return True

    async def _push(self, snapshot: ConfigMap) -> bool:
        try:
            await self.remote.push(snapshot)
        except SnapshotError as e:
            logger.error(f"Failed to push config: {e}")
            return False
        except Exception as e:
            logger.error(f"Unexpected error pushing config: {e}", exc_info=True)
            return False

        logger.info("Pushed config to remote", extra={"key_count": len(snapshot)})
        return True

    async def flush(self) -> None:
        """Wait for outstanding saves"""
        if self._pending_saves:
            await asyncio.gather(*list(self._pending_saves))

    # ----- Listener registry -----

    def add_listener(self, key: str, listener: KeyListener) -> Subscription:
        return self._listeners.add_key(key, listener)

    def remove_listener(self, key: str, listener: KeyListener) -> None:
        self._listeners.remove_key(key, listener)

    def add_any_listener(self, listener: AnyListener) -> Subscription:
        return self._listeners.add_any(listener)

    def remove_any_listener(self, listener: AnyListener) -> None:
        self._listeners.remove_any(listener)

    def add_condition_listener(self, predicate: ConditionPredicate, listener: AnyListener) -> Subscription:
        return self._listeners.add_condition(predicate, listener)

    def remove_condition_listener(self, predicate: ConditionPredicate, listener: AnyListener) -> None:
        self._listeners.remove_condition(predicate, listener)

    def unsubscribe(self, subscription: Subscription) -> bool:
        return subscription.cancel()

    def listener_counts(self) -> dict[str, int]:
        return self._listeners.counts()

    def _emit_key(self, key: str, value: ConfigValue | None) -> None:
        for sub in self._listeners.key_listeners(key):
            try:
                sub.callback(key, value)
            except Exception as e:
                logger.error(f"Listener for '{key}' failed: {e}", exc_info=True)

    def _emit_any(self) -> None:
        for sub in self._listeners.any_listeners():
            try:
                sub.callback()
            except Exception as e:
                logger.error(f"Any-change listener failed: {e}", exc_info=True)

    def _emit_condition(self, changed: frozenset[str]) -> None:
        for sub in self._listeners.condition_listeners():
            try:
                if sub.predicate(changed):
                    sub.callback()
            except Exception as e:
                logger.error(f"Condition listener failed: {e}", exc_info=True)

    # ----- Synchronization -----

    def apply_pushed_snapshot(self, new_config: Mapping[str, ConfigValue]) -> frozenset[str]:
        """
        Apply a snapshot delivered by a backend change notification.

        Key listeners of each changed key, then any listeners, then
        condition listeners. An empty batch notifies nobody. Key listeners
        receive what get() would return, so a corrupt value arrives as None.
        """
        new_config = copy.deepcopy(dict(new_config))
        changed = compute_change_batch(self._config, new_config)
        self._config = new_config
        if not changed:
            return changed

        for key in changed:
            self._emit_key(key, self.get(key))
        self._emit_any()
        self._emit_condition(changed)
        return changed

    def apply_polled_snapshot(self, new_config: Mapping[str, ConfigValue]) -> frozenset[str]:
        """
        Apply a snapshot fetched by polled sync.

        Condition listeners first, then load() (any listeners). An empty
        batch leaves the map untouched and notifies nobody.
        """
        changed = compute_change_batch(self._config, new_config)
        if not changed:
            return changed

        self._emit_condition(changed)
        self.load(new_config)
        return changed

    def start_event_driven_sync(self) -> EventDrivenSync:
        """
        Follow backend change notifications.

        Raises:
            SyncError: if the backend cannot deliver notifications here
                (file backends need a running event loop)
        """
        if self._event_sync is None:
            self._event_sync = EventDrivenSync(self)
        self._event_sync.start()
        return self._event_sync

    def start_polled_sync(
        self,
        on_change: Callable[[], Awaitable[None] | None] | None = None,
    ) -> PolledSync:
        """Poll the remote snapshot endpoint every poll_interval_s"""
        if self.remote is None:
            raise ConfigError("Polled sync needs a remote snapshot client")

        if self._polled_sync is not None and self._polled_sync.running:
            logger.warning("Polled sync already running")
            return self._polled_sync

        self._polled_sync = PolledSync(self, self.remote, self.poll_interval_s, on_change)
        self._polled_sync.start()
        return self._polled_sync

    def stop_sync(self) -> None:
        """Stop both sync strategies (no-op for ones not running)"""
        if self._event_sync is not None:
            self._event_sync.stop()
        if self._polled_sync is not None:
            self._polled_sync.stop()
