import asyncio

import pytest

from shared_config.common.scheduler import ScheduledLoop


@pytest.mark.asyncio
async def test_runs_repeatedly_until_stopped(wait_until):
    calls = []

    async def tick():
        calls.append(1)

    loop = ScheduledLoop(0.02, tick, name="test")
    loop.start()
    assert loop.running

    assert await wait_until(lambda: len(calls) >= 3)
    loop.stop()
    count = len(calls)
    await asyncio.sleep(0.1)

    assert not loop.running
    assert len(calls) == count
    assert loop.execution_count >= 3


@pytest.mark.asyncio
async def test_errors_do_not_stop_the_loop(wait_until):
    calls = []

    async def flaky():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")

    loop = ScheduledLoop(0.02, flaky, name="flaky")
    loop.start()
    try:
        assert await wait_until(lambda: len(calls) >= 3)
    finally:
        loop.stop()

    stats = loop.get_stats()
    assert stats["error_count"] == 1
    assert stats["execution_count"] >= 2


@pytest.mark.asyncio
async def test_stop_is_idempotent():
    async def tick():
        pass

    loop = ScheduledLoop(1.0, tick)
    loop.stop()
    loop.start()
    loop.start()
    loop.stop()
    loop.stop()
    assert not loop.running


def test_start_without_event_loop_raises():
    async def tick():
        pass

    loop = ScheduledLoop(1.0, tick)
    with pytest.raises(RuntimeError):
        loop.start()
    assert not loop.running


@pytest.mark.parametrize("interval", [0, -0.5])
def test_interval_must_be_positive(interval):
    async def tick():
        pass

    with pytest.raises(ValueError):
        ScheduledLoop(interval, tick)
