import asyncio
import threading

import pytest

from relaybus.events import ChannelError


def test_promise_resolves_on_emit(bus):
    async def scenario():
        future = bus.promise("y")
        bus.emit("y", "done")
        return await future

    assert asyncio.run(scenario()) == "done"


def test_promise_resolves_with_first_argument(bus):
    async def scenario():
        future = bus.promise("y")
        bus.emit("y", "first", "second")
        return await future

    assert asyncio.run(scenario()) == "first"


def test_promise_resolves_none_without_arguments(bus):
    async def scenario():
        future = bus.promise("y")
        bus.emit("y")
        return await future

    assert asyncio.run(scenario()) is None


def test_promise_resolved_by_later_emit(bus):
    async def scenario():
        loop = asyncio.get_running_loop()
        loop.call_later(0.01, bus.emit, "eventName", "arg1")
        return await bus.promise("eventName")

    assert asyncio.run(scenario()) == "arg1"


def test_promise_rejects_on_error(bus):
    class MyError(Exception):
        pass

    async def scenario():
        future = bus.promise("errorEvent")
        bus.error("errorEvent", MyError("Error occurred"))
        await future

    with pytest.raises(MyError, match="Error occurred"):
        asyncio.run(scenario())


def test_promise_wraps_non_exception_reason(bus):
    async def scenario():
        future = bus.promise("errorEvent")
        bus.error("errorEvent", {"code": 7})
        await future

    with pytest.raises(ChannelError) as info:
        asyncio.run(scenario())

    assert info.value.channel == "errorEvent"
    assert info.value.reason == {"code": 7}


def test_promise_settles_once_and_retires_both_sides(bus):
    async def scenario():
        future = bus.promise("y")
        assert bus.listener_count("y") == 1
        bus.emit("y", "value")
        assert bus.listener_count("y") == 0
        bus.error("y", RuntimeError("late"))
        bus.emit("y", "later")
        return await future

    assert asyncio.run(scenario()) == "value"


def test_error_first_retires_resolver(bus):
    async def scenario():
        future = bus.promise("y")
        bus.error("y", RuntimeError("first"))
        assert bus.listener_count("y") == 0
        bus.emit("y", "ignored")
        with pytest.raises(RuntimeError, match="first"):
            await future

    asyncio.run(scenario())


def test_cancelled_promise_unsubscribes(bus):
    async def scenario():
        future = bus.promise("never")
        future.cancel()
        await asyncio.sleep(0)
        return bus.listener_count("never")

    assert asyncio.run(scenario()) == 0


def test_promise_timeout_unsubscribes(bus):
    async def scenario():
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(bus.promise("never"), timeout=0.01)
        await asyncio.sleep(0)
        return bus.listener_count("never")

    assert asyncio.run(scenario()) == 0


def test_promise_resolved_from_another_thread(bus):
    async def scenario():
        future = bus.promise("worker.done")
        thread = threading.Thread(target=bus.emit, args=("worker.done", 42))
        thread.start()
        result = await asyncio.wait_for(future, timeout=5)
        thread.join()
        return result

    assert asyncio.run(scenario()) == 42


def test_promise_requires_running_loop(bus):
    with pytest.raises(RuntimeError):
        bus.promise("y")


def test_promise_with_explicit_loop(bus):
    loop = asyncio.new_event_loop()
    try:
        future = bus.promise("y", loop=loop)
        bus.emit("y", "value")
        assert loop.run_until_complete(future) == "value"
    finally:
        loop.close()
