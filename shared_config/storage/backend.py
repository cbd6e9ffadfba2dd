"""
Storage Backend Contract

A backend persists one configuration entry (a flat string -> primitive
mapping) and tells subscribers when that entry changes, whoever wrote it.

MemoryBackend keeps the entry in process memory. Several stores sharing a
single MemoryBackend behave like several contexts sharing one storage area.
"""

import copy
from typing import Any, Callable, Protocol, runtime_checkable

from ..common.logging_setup import get_service_logger

logger = get_service_logger("storage.memory")

SnapshotCallback = Callable[[dict[str, Any]], None]


@runtime_checkable
class StorageBackend(Protocol):
    """What the store needs from a persistence mechanism"""

    def is_available(self) -> bool:
        """Whether this context can use the backend at all (checked once)"""
        ...

    async def get_snapshot(self) -> dict[str, Any] | None:
        """Persisted map, or None if nothing has been persisted"""
        ...

    async def put_snapshot(self, config: dict[str, Any]) -> None:
        """Persist a full map (raises BackendError on failure)"""
        ...

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """Register for change notifications, returns an unsubscribe function"""
        ...

    async def close(self) -> None:
        ...


class MemoryBackend:
    """
    In-process backend.

    put_snapshot() notifies every subscriber synchronously with its own
    copy of the new map, including the writer's own store.
    """

    def __init__(self, initial: dict[str, Any] | None = None, available: bool = True):
        self._value: dict[str, Any] | None = copy.deepcopy(initial) if initial is not None else None
        self._available = available
        self._subscribers: list[SnapshotCallback] = []
        self.write_count = 0

    def is_available(self) -> bool:
        return self._available

    async def get_snapshot(self) -> dict[str, Any] | None:
        if self._value is None:
            return None
        return copy.deepcopy(self._value)

    async def put_snapshot(self, config: dict[str, Any]) -> None:
        self._value = copy.deepcopy(config)
        self.write_count += 1
        self._notify()

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self) -> None:
        for callback in list(self._subscribers):
            try:
                callback(copy.deepcopy(self._value))
            except Exception as e:
                logger.error(f"Change subscriber failed: {e}", exc_info=True)

    async def close(self) -> None:
        self._subscribers.clear()
