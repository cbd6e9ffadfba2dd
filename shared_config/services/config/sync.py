"""
Configuration Sync

Keeps a ConfigStore in step with changes made by other contexts.

- EventDrivenSync: subscribes to the backend's change notifications.
  Push-based, no polling latency. Needs direct backend access.
- PolledSync: fetches the full snapshot from the remote endpoint on a
  fixed interval and diffs it locally. A failed fetch skips that tick;
  the next tick retries.

Both are handles with start()/stop(); stop() is idempotent and is a
no-op before start().
"""

import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Mapping

import httpx

from ...common.exceptions import SnapshotError, SyncError
from ...common.logging_setup import get_service_logger, log_change_batch
from ...common.scheduler import ScheduledLoop

if TYPE_CHECKING:
    from .store import ConfigStore

logger = get_service_logger("config.sync")


class RemoteSnapshotClient:
    """
    HTTP client for the snapshot endpoint served by the background context.

    GET  {base_url}/config -> full JSON object
    PUT  {base_url}/config <- full JSON object
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        path: str = "/config",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.path = path
        self._transport = transport
        # Reusable HTTP client - avoids connection overhead per poll
        self._client: httpx.AsyncClient | None = None

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.path}"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create reusable HTTP client"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """Close HTTP client"""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def fetch(self) -> dict[str, Any]:
        """
        Fetch the full current snapshot.

        Raises:
            SnapshotError: on transport errors, non-2xx replies or a body
                that is not a JSON object
        """
        try:
            client = await self._get_client()
            response = await client.get(self.url)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            raise SnapshotError(f"HTTP error fetching snapshot: {e}", url=self.url) from e
        except ValueError as e:
            raise SnapshotError(f"Snapshot is not valid JSON: {e}", url=self.url) from e

        if not isinstance(data, dict):
            raise SnapshotError(
                f"Snapshot must be a JSON object, got {type(data).__name__}", url=self.url,
            )
        return data

    async def push(self, config: Mapping[str, Any]) -> None:
        """Replace the remote snapshot"""
        try:
            client = await self._get_client()
            response = await client.put(self.url, json=dict(config))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SnapshotError(f"HTTP error pushing snapshot: {e}", url=self.url) from e


class SyncHandle:
    """Base for a running synchronization strategy"""

    def __init__(self, store: "ConfigStore"):
        self.store = store
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError


class EventDrivenSync(SyncHandle):
    """Applies backend change notifications to the store"""

    def __init__(self, store: "ConfigStore"):
        super().__init__(store)
        self._unsubscribe: Callable[[], None] | None = None
        self.event_count = 0

    def start(self) -> None:
        if self._running:
            return

        backend = self.store.backend
        if backend is None:
            logger.warning("No storage backend in this context, event-driven sync not started")
            return

        try:
            self._unsubscribe = backend.subscribe(self._on_backend_change)
        except RuntimeError as e:
            # File watchers need a running event loop
            raise SyncError(f"Cannot subscribe to backend: {e}", operation="subscribe") from e
        self._running = True
        logger.info(f"Event-driven sync started for '{self.store.name}'")

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        logger.info(f"Event-driven sync stopped for '{self.store.name}'")

    def _on_backend_change(self, new_config: Mapping[str, Any]) -> None:
        if not isinstance(new_config, Mapping):
            logger.warning(f"Ignoring change notification carrying {type(new_config).__name__}")
            return

        self.event_count += 1
        changed = self.store.apply_pushed_snapshot(new_config)
        log_change_batch(logger, "event-driven sync", changed)


class PolledSync(SyncHandle):
    """
    Periodic snapshot fetch and diff.

    When a tick finds changes: condition listeners, then load() on the
    store (any listeners), then the optional on_change callback.
    """

    def __init__(
        self,
        store: "ConfigStore",
        remote: RemoteSnapshotClient,
        interval_s: float = 1.0,
        on_change: Callable[[], Awaitable[None] | None] | None = None,
    ):
        super().__init__(store)
        self.remote = remote
        self.interval_s = interval_s
        self.on_change = on_change
        self._loop: ScheduledLoop | None = None

        self.tick_count = 0
        self.change_count = 0
        self.failure_count = 0
        self.consecutive_failures = 0

    def start(self) -> None:
        if self._running:
            return

        self._loop = ScheduledLoop(self.interval_s, self.tick, name=f"polled-sync:{self.store.name}")
        self._loop.start()
        self._running = True
        logger.info(
            f"Polled sync started for '{self.store.name}' every {self.interval_s}s from {self.remote.url}",
        )

    def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._loop is not None:
            self._loop.stop()
            self._loop = None
        logger.info(f"Polled sync stopped for '{self.store.name}'")

    async def tick(self) -> bool:
        """
        Run one sync cycle.

        Returns:
            True if the store changed
        """
        self.tick_count += 1

        try:
            new_config = await self.remote.fetch()
        except SnapshotError as e:
            self.failure_count += 1
            self.consecutive_failures += 1
            logger.warning(
                f"Snapshot fetch failed, retrying next tick: {e}",
                extra={"consecutive_failures": self.consecutive_failures},
            )
            return False

        if self.consecutive_failures:
            logger.info(f"Snapshot fetch recovered after {self.consecutive_failures} failures")
            self.consecutive_failures = 0

        changed = self.store.apply_polled_snapshot(new_config)
        log_change_batch(logger, "polled sync", changed)
        if not changed:
            return False

        self.change_count += 1
        if self.on_change is not None:
            try:
                result = self.on_change()
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"on_change callback failed: {e}", exc_info=True)

        return True

    def get_stats(self) -> dict:
        return {
            "running": self._running,
            "interval_s": self.interval_s,
            "tick_count": self.tick_count,
            "change_count": self.change_count,
            "failure_count": self.failure_count,
            "consecutive_failures": self.consecutive_failures,
        }
