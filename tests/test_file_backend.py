import json

import pytest

from shared_config.common.exceptions import BackendError, SyncError
from shared_config.services.config.store import ConfigStore, StoreState
from shared_config.storage.backend import StorageBackend
from shared_config.storage.file_backend import FileBackend


def test_satisfies_backend_protocol(tmp_path):
    assert isinstance(FileBackend(tmp_path), StorageBackend)


def test_available_creates_state_dir(tmp_path):
    backend = FileBackend(tmp_path / "nested" / "state")
    assert backend.is_available()
    assert (tmp_path / "nested" / "state").is_dir()


def test_unavailable_when_state_dir_cannot_exist(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")

    backend = FileBackend(blocker / "state")
    assert not backend.is_available()

    store = ConfigStore(backend=backend, defaults={"x": 1})
    assert store.backend is None
    assert store.state is StoreState.READY


@pytest.mark.asyncio
async def test_missing_entry_reads_as_none(tmp_path):
    backend = FileBackend(tmp_path)
    assert await backend.get_snapshot() is None
    assert backend.get_age() is None


@pytest.mark.asyncio
async def test_write_then_read(tmp_path):
    backend = FileBackend(tmp_path, entry="settings")
    await backend.put_snapshot({"vodDownload": True, "quality": "720p", "retries": 3})

    assert await backend.get_snapshot() == {"vodDownload": True, "quality": "720p", "retries": 3}
    assert backend.path == tmp_path / "settings.json"
    assert backend.get_age() is not None
    assert list(tmp_path.glob("*.tmp")) == []


@pytest.mark.asyncio
async def test_entry_file_layout(tmp_path):
    backend = FileBackend(tmp_path)
    await backend.put_snapshot({"clipDownload": False})

    data = json.loads(backend.path.read_text())
    assert data["entry"] == "config"
    assert data["value"] == {"clipDownload": False}
    assert "_updated_at" in data


@pytest.mark.asyncio
@pytest.mark.parametrize("content", ["{not json", '["a"]', '{"entry": "config", "value": 5}'])
async def test_unreadable_entry_raises(tmp_path, content):
    backend = FileBackend(tmp_path)
    backend.path.write_text(content)

    with pytest.raises(BackendError) as exc_info:
        await backend.get_snapshot()
    assert exc_info.value.operation == "read"


@pytest.mark.asyncio
async def test_store_falls_back_to_defaults_on_corrupt_file(tmp_path):
    backend = FileBackend(tmp_path)
    backend.path.write_text("{not json")

    store = ConfigStore(backend=backend, defaults={"clipDownload": True})
    await store.load_from_storage()

    assert store.ready
    assert store.snapshot() == {"clipDownload": True}


@pytest.mark.asyncio
async def test_write_to_other_instance_is_delivered(tmp_path, recorder, wait_until):
    writer = ConfigStore(backend=FileBackend(tmp_path, watch_interval_s=0.05))
    reader_backend = FileBackend(tmp_path, watch_interval_s=0.05)
    reader = ConfigStore(backend=reader_backend)
    await writer.load_from_storage()
    await reader.load_from_storage()

    reader.start_event_driven_sync()
    reader.add_listener("vodDownload", recorder.key)
    try:
        writer.set("vodDownload", True)
        assert await writer.save() is True

        assert await wait_until(lambda: reader.get("vodDownload") is True)
        assert recorder.calls == [("key", "vodDownload", True)]
    finally:
        reader.stop_sync()
        await reader_backend.close()


@pytest.mark.asyncio
async def test_corrupt_write_is_skipped_by_watcher(tmp_path, recorder, wait_until):
    backend = FileBackend(tmp_path, watch_interval_s=0.05)
    await backend.put_snapshot({"x": 1})
    store = ConfigStore(backend=backend)
    await store.load_from_storage()
    store.start_event_driven_sync()
    store.add_any_listener(recorder.any)

    try:
        backend.path.write_text("{half written")
        await wait_until(lambda: False, timeout=0.2)
        assert recorder.calls == []
        assert store.get("x") == 1

        await backend.put_snapshot({"x": 2})
        assert await wait_until(lambda: store.get("x") == 2)
    finally:
        await backend.close()


@pytest.mark.asyncio
async def test_last_unsubscribe_stops_watcher(tmp_path):
    backend = FileBackend(tmp_path, watch_interval_s=0.05)
    first = backend.subscribe(lambda value: None)
    second = backend.subscribe(lambda value: None)

    assert backend._watcher is not None and backend._watcher.running

    first()
    assert backend._watcher is not None
    second()
    assert backend._watcher is None


def test_event_driven_sync_needs_running_loop(tmp_path):
    backend = FileBackend(tmp_path)
    store = ConfigStore(backend=backend)

    with pytest.raises(SyncError):
        store.start_event_driven_sync()
    assert backend._watcher is None
    assert backend._subscribers == []
