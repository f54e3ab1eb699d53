"""
Channel registry module.

Provides the in-process pub/sub registry, its disposable handles and the
promise bridge.
"""

from relaybus.events.bus import (
    DeadLetter,
    ErrorHandler,
    EventHandler,
    Registry,
    Subscription,
    destroy,
    emit,
    error,
    gather,
    gather_map,
    get_registry,
    off,
    off_all,
    on,
    once,
    promise,
    publish,
    reset_registry,
    subscribe,
    unsubscribe,
)
from relaybus.events.disposable import Disposable
from relaybus.events.handlers import HandlerResults
from relaybus.events.promise import ChannelError

__all__ = [
    "ChannelError",
    "DeadLetter",
    "Disposable",
    "ErrorHandler",
    "EventHandler",
    "HandlerResults",
    "Registry",
    "Subscription",
    "destroy",
    "emit",
    "error",
    "gather",
    "gather_map",
    "get_registry",
    "off",
    "off_all",
    "on",
    "once",
    "promise",
    "publish",
    "reset_registry",
    "subscribe",
    "unsubscribe",
]
