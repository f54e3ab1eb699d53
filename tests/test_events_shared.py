import asyncio

import relaybus
from relaybus import events
from relaybus.events import Registry, get_registry, reset_registry


def test_get_registry_is_singleton():
    first = get_registry()
    assert isinstance(first, Registry)
    assert get_registry() is first
    assert relaybus.get_registry() is first


def test_reset_registry_builds_fresh_instance():
    first = get_registry()
    first.on("ping", lambda: None)
    reset_registry()
    assert get_registry() is not first
    assert get_registry().channels() == []


def test_shared_registry_reads_environment(monkeypatch):
    monkeypatch.setenv("RELAYBUS_ISOLATE_FAULTS", "1")
    reset_registry()
    assert get_registry().config.isolate_faults is True


def test_module_level_helpers():
    seen = []

    def handler(value):
        seen.append(value)
        return value * 2

    disposable = events.on("calc", handler)
    events.emit("calc", 1)
    events.publish("calc", 2)
    assert events.gather("calc", 3) == [6]
    assert events.gather_map("calc", 4) == {handler: 8}
    disposable.dispose()
    events.emit("calc", 5)

    assert seen == [1, 2, 3, 4]


def test_subscribe_decorator():
    seen = []

    @events.subscribe("model.loaded")
    def on_loaded(name):
        seen.append(name)

    events.emit("model.loaded", "llama")
    assert seen == ["llama"]
    assert events.off("model.loaded", on_loaded) is True


def test_subscribe_once_with_error_handler():
    seen = []
    events.subscribe("job", seen.append, error_handler=lambda r: seen.append(("err", r)), once=True)

    events.error("job", "failed")
    events.emit("job", "ignored")

    assert seen == [("err", "failed")]


def test_module_once_and_promise():
    seen = []
    events.once("boot", seen.append)
    events.emit("boot", "a")
    events.emit("boot", "b")
    assert seen == ["a"]

    async def scenario():
        future = events.promise("ready")
        events.emit("ready", "yes")
        return await future

    assert asyncio.run(scenario()) == "yes"


def test_module_off_all_destroy_and_unsubscribe():
    seen = []

    def handler(value):
        seen.append(value)

    events.on("a", handler)
    events.on("b", handler)
    events.on("c", handler)

    assert events.unsubscribe("a", handler) is True
    events.off_all("b")
    events.emit("a", 1)
    events.emit("b", 2)
    assert get_registry().subscribers == {"a": [], "b": [], "c": [handler]}

    events.destroy()
    events.emit("c", 3)
    assert seen == []
    assert get_registry().channels() == []


def test_module_promise_with_explicit_loop():
    loop = asyncio.new_event_loop()
    try:
        future = events.promise("ready", loop=loop)
        events.emit("ready", "value")
        assert loop.run_until_complete(future) == "value"
    finally:
        loop.close()
