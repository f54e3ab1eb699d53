"""
relaybus: in-process publish/subscribe registry.

This package contains:
- Events (channel registry, one-shot subscriptions, promise bridge)
- Config (environment-driven registry settings)
- Logging (structlog configuration)
"""

from relaybus.config import RegistryConfig
from relaybus.events import ChannelError, Disposable, Registry, get_registry

__version__ = "0.1.0"

__all__ = [
    "ChannelError",
    "Disposable",
    "Registry",
    "RegistryConfig",
    "get_registry",
]
