"""
File Backend

File-based persistence for a configuration entry, shared between processes.
Each entry is one JSON file in the state directory:

    <state_dir>/<entry>.json
    {"entry": "config", "value": {...}, "_updated_at": "2026-..."}

Writes go to a temp file and are renamed into place, so readers in other
processes never see a half-written file. Change notification is done by
watching the file's (inode, mtime, size) stamp on a ScheduledLoop; every
process watching the entry, the writer included, sees each write.
"""

import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable
import time

from ..common.exceptions import BackendError
from ..common.logging_setup import get_service_logger
from ..common.scheduler import ScheduledLoop
from .backend import SnapshotCallback

logger = get_service_logger("storage.file")

FileStamp = tuple[int, int, int]


class FileBackend:
    """
    JSON-file backend for one entry.

    Availability (state directory can be created and written) is decided
    once, on the first is_available() call.
    """

    def __init__(
        self,
        state_dir: str | Path,
        entry: str = "config",
        watch_interval_s: float = 0.25,
    ):
        self.state_dir = Path(state_dir)
        self.entry = entry
        self.watch_interval_s = watch_interval_s

        self._available: bool | None = None
        self._subscribers: list[SnapshotCallback] = []
        self._watcher: ScheduledLoop | None = None
        self._last_stamp: FileStamp | None = None

    @property
    def path(self) -> Path:
        """File path for the entry"""
        return self.state_dir / f"{self.entry}.json"

    def is_available(self) -> bool:
        if self._available is None:
            try:
                self.state_dir.mkdir(parents=True, exist_ok=True)
                self._available = os.access(self.state_dir, os.W_OK)
            except OSError as e:
                logger.info(f"State directory {self.state_dir} unusable: {e}")
                self._available = False
        return self._available

    async def get_snapshot(self) -> dict[str, Any] | None:
        return self._read()

    def _read(self) -> dict[str, Any] | None:
        """Read the entry, None if never written"""
        path = self.path
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            raise BackendError(f"Failed to read {path}: {e}", operation="read")

        if not isinstance(data, dict) or not isinstance(data.get("value"), dict):
            raise BackendError(f"Malformed entry file {path}", operation="read")

        return data["value"]

    async def put_snapshot(self, config: dict[str, Any]) -> None:
        path = self.path
        envelope = {
            "entry": self.entry,
            "value": config,
            "_updated_at": datetime.now(timezone.utc).isoformat(),
        }

        try:
            self.state_dir.mkdir(parents=True, exist_ok=True)
            temp_path = path.with_name(f"{path.name}.{os.getpid()}.tmp")
            with open(temp_path, "w", encoding="utf-8") as f:
                json.dump(envelope, f, indent=2)
                f.flush()
                os.fsync(f.fileno())
            temp_path.replace(path)
        except (OSError, TypeError, ValueError) as e:
            raise BackendError(f"Failed to write {path}: {e}", operation="write")

        logger.debug(f"Wrote entry '{self.entry}' ({len(config)} keys)")

    def subscribe(self, callback: SnapshotCallback) -> Callable[[], None]:
        """
        Register for change notifications.

        The first subscriber starts the file watcher, so this must be called
        with a running event loop. The last one to unsubscribe stops it.
        """
        if self._watcher is None:
            watcher = ScheduledLoop(
                self.watch_interval_s,
                self._check_for_changes,
                name=f"watch:{self.entry}",
            )
            watcher.start()
            self._watcher = watcher
            self._last_stamp = self._stamp()
            logger.debug(f"Watching {self.path}")
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)
            if not self._subscribers:
                self._stop_watcher()

        return unsubscribe

    def _stamp(self) -> FileStamp | None:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return (stat.st_ino, stat.st_mtime_ns, stat.st_size)

    async def _check_for_changes(self) -> None:
        """One watcher tick: deliver the new value if the file changed"""
        stamp = self._stamp()
        if stamp == self._last_stamp:
            return
        self._last_stamp = stamp

        if stamp is None:
            logger.warning(f"Entry file {self.path} disappeared")
            return

        try:
            value = self._read()
        except BackendError as e:
            logger.warning(f"Skipping change notification: {e}")
            return
        if value is None:
            return

        for callback in list(self._subscribers):
            try:
                callback(dict(value))
            except Exception as e:
                logger.error(f"Change subscriber failed: {e}", exc_info=True)

    def get_age(self) -> float | None:
        """
        Get age of the entry file in seconds.

        Returns:
            Age in seconds, or None if not written yet
        """
        path = self.path
        if not path.exists():
            return None
        return time.time() - path.stat().st_mtime

    def _stop_watcher(self) -> None:
        if self._watcher is not None:
            self._watcher.stop()
            self._watcher = None

    async def close(self) -> None:
        self._subscribers.clear()
        self._stop_watcher()
