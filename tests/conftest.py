"""Pytest configuration and shared fixtures."""
import pytest

from relaybus.config import RegistryConfig
from relaybus.events import Registry, reset_registry


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "slow: mark test as slow running")
    config.addinivalue_line("markers", "property: mark test as hypothesis property test")


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep RELAYBUS_* settings and the shared registry out of each test."""
    for name in (
        "RELAYBUS_ISOLATE_FAULTS",
        "RELAYBUS_MAX_DEAD_LETTERS",
        "RELAYBUS_LOG_LEVEL",
        "RELAYBUS_JSON_LOGS",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_registry()
    yield
    reset_registry()


@pytest.fixture
def bus():
    return Registry()


@pytest.fixture
def isolated_bus():
    return Registry(RegistryConfig(isolate_faults=True, max_dead_letters=10))


@pytest.fixture
def recorder():
    """Build handlers that append their call arguments to a shared log."""
    calls = []

    def make(name, result=None):
        def handler(*args, **kwargs):
            calls.append((name, args, kwargs))
            return result

        handler.__qualname__ = f"recorder.{name}"
        return handler

    make.calls = calls
    return make
