"""
Channel registry for in-process pub/sub.

Provides:
- Named channels with ordered, identity-keyed handler sets
- Synchronous fan-out (emit), result aggregation (gather, gather_map)
- Error routing to per-subscription error handlers
- One-shot subscriptions and disposable handles
- A promise bridge for awaiting the next emission
- A lazily created process-wide registry with module-level helpers
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from collections import deque
from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from relaybus.config import RegistryConfig
from relaybus.events.disposable import Disposable
from relaybus.events.handlers import HandlerResults, same_handler
from relaybus.events.promise import create_promise
from relaybus.logging_config import get_logger

logger = get_logger(__name__)


# =============================================================================
# Types
# =============================================================================

EventHandler = Callable[..., Any]
ErrorHandler = Callable[[Any], Any]


def _handler_name(handler: Callable[..., Any]) -> str:
    return getattr(handler, "__qualname__", None) or repr(handler)


@dataclass(eq=False)
class Subscription:
    """A handler registered on a channel."""

    token: int
    handler: EventHandler
    error_handler: ErrorHandler | None = None
    once: bool = False


@dataclass
class DeadLetter:
    """A handler fault caught while ``isolate_faults`` is enabled."""

    channel: str
    handler: Callable[..., Any]
    error: Exception
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "channel": self.channel,
            "handler": _handler_name(self.handler),
            "error": repr(self.error),
            "timestamp": self.timestamp.isoformat(),
        }


# =============================================================================
# Registry
# =============================================================================


class Registry:
    """
    Registry of channel subscriptions with synchronous dispatch.

    Handlers run on the caller's thread in registration order. Each
    dispatch call walks a snapshot of the channel taken when the call
    starts: handlers added meanwhile wait for the next call, handlers
    removed meanwhile are skipped.

    A handler subscribed with ``on`` is stored at most once per channel;
    registering it again returns a handle to the existing subscription.
    Every ``once`` call adds its own one-shot subscription, independent of
    any ``on`` subscription for the same handler. Handlers are matched by
    identity (see ``relaybus.events.handlers.same_handler``).

    Example:
        bus = Registry()
        sub = bus.on("ping", lambda *args: print(args))
        bus.emit("ping", 1, 2)
        sub.dispose()
    """

    def __init__(self, config: RegistryConfig | None = None):
        """
        Initialize registry.

        Args:
            config: Registry configuration (defaults when omitted)
        """
        self.config = config or RegistryConfig()
        # channel -> token -> subscription, in registration order
        self._subscribers: dict[str, dict[int, Subscription]] = {}
        self._tokens = itertools.count()
        self._dead_letters: deque[DeadLetter] = deque(maxlen=self.config.max_dead_letters)
        self._lock = threading.RLock()

    # -------------------------------------------------------------------------
    # Subscription
    # -------------------------------------------------------------------------

    def on(
        self,
        channel: str,
        handler: EventHandler,
        error_handler: ErrorHandler | None = None,
    ) -> Disposable:
        """
        Subscribe a handler to a channel.

        Args:
            channel: Channel name
            handler: Called with the arguments of every ``emit``
            error_handler: Called with the reason of every ``error``

        Returns:
            Disposable that removes this subscription
        """
        return self._add(channel, handler, error_handler, once=False)

    def once(
        self,
        channel: str,
        handler: EventHandler,
        error_handler: ErrorHandler | None = None,
    ) -> Disposable:
        """
        Subscribe a handler for a single delivery.

        The subscription is removed before the handler (or the error
        handler) runs, so emitting the same channel from inside the
        handler does not reach it again. ``off(channel, handler)`` cancels
        a pending one-shot.

        Returns:
            Disposable that removes the subscription if it has not fired
        """
        return self._add(channel, handler, error_handler, once=True)

    def _add(
        self,
        channel: str,
        handler: EventHandler,
        error_handler: ErrorHandler | None,
        once: bool,
    ) -> Disposable:
        if not callable(handler):
            raise TypeError(f"handler must be callable, got {type(handler).__name__}")
        if error_handler is not None and not callable(error_handler):
            raise TypeError(
                f"error_handler must be callable, got {type(error_handler).__name__}"
            )

        with self._lock:
            entries = self._subscribers.setdefault(channel, {})
            subscription = None
            if not once:
                subscription = next(
                    (
                        entry
                        for entry in entries.values()
                        if not entry.once and same_handler(entry.handler, handler)
                    ),
                    None,
                )
            if subscription is None:
                subscription = Subscription(next(self._tokens), handler, error_handler, once)
                entries[subscription.token] = subscription
                logger.debug(
                    "event_subscribed",
                    channel=channel,
                    handler=_handler_name(handler),
                    once=once,
                )
            else:
                logger.debug(
                    "event_already_subscribed",
                    channel=channel,
                    handler=_handler_name(handler),
                )

        return Disposable(lambda: self._discard(channel, subscription))

    def _discard(self, channel: str, subscription: Subscription) -> bool:
        with self._lock:
            entries = self._subscribers.get(channel)
            if not entries or entries.get(subscription.token) is not subscription:
                return False
            del entries[subscription.token]
        logger.debug("event_unsubscribed", channel=channel)
        return True

    def off(self, channel: str, handler: EventHandler) -> bool:
        """
        Unsubscribe a handler from a channel.

        Removes the ``on`` subscription and any pending one-shots of the
        handler.

        Returns:
            True if the handler was subscribed
        """
        with self._lock:
            entries = self._subscribers.get(channel)
            if not entries:
                return False
            matched = [
                token
                for token, entry in entries.items()
                if same_handler(entry.handler, handler)
            ]
            for token in matched:
                del entries[token]
        if not matched:
            return False
        logger.debug("event_unsubscribed", channel=channel, removed=len(matched))
        return True

    def off_all(self, channel: str) -> None:
        """Remove every handler from a channel, keeping the channel itself."""
        with self._lock:
            entries = self._subscribers.get(channel)
            if entries is None:
                return
            entries.clear()
        logger.debug("channel_cleared", channel=channel)

    def destroy(self) -> None:
        """Remove every channel, returning the registry to its initial state."""
        with self._lock:
            self._subscribers.clear()
        logger.debug("registry_destroyed")

    subscribe = on
    unsubscribe = off

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    def _claim(self, channel: str, subscription: Subscription) -> bool:
        """Confirm a snapshot entry is still live, retiring it if one-shot."""
        with self._lock:
            entries = self._subscribers.get(channel)
            if not entries or entries.get(subscription.token) is not subscription:
                return False
            if subscription.once:
                del entries[subscription.token]
            return True

    def _deliver(
        self,
        channel: str,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        errors: bool = False,
    ) -> Iterator[tuple[Subscription, Any]]:
        with self._lock:
            entries = self._subscribers.get(channel)
            snapshot = list(entries.values()) if entries else []

        logger.debug(
            "event_dispatching",
            channel=channel,
            handlers=len(snapshot),
            errors=errors,
        )

        for subscription in snapshot:
            target = subscription.error_handler if errors else subscription.handler
            if target is None:
                continue
            if not self._claim(channel, subscription):
                continue

            try:
                result = target(*args, **kwargs)
            except Exception as e:
                if not self.config.isolate_faults:
                    raise
                logger.exception(
                    "event_handler_error",
                    channel=channel,
                    handler=_handler_name(target),
                )
                self._dead_letters.append(DeadLetter(channel, target, e))
                result = None

            yield subscription, result

    def emit(self, channel: str, *args: Any, **kwargs: Any) -> None:
        """
        Call every handler on a channel, discarding results.

        Handler exceptions propagate and stop the remaining deliveries
        unless ``isolate_faults`` is configured.
        """
        for _ in self._deliver(channel, args, kwargs):
            pass

    publish = emit

    def gather(self, channel: str, *args: Any, **kwargs: Any) -> list[Any]:
        """
        Call every handler on a channel and collect the results.

        Returns:
            Results in registration order
        """
        return [result for _, result in self._deliver(channel, args, kwargs)]

    def gather_map(self, channel: str, *args: Any, **kwargs: Any) -> HandlerResults:
        """
        Call every handler on a channel and key the results by handler.

        Returns:
            Mapping of handler (by identity) to its result, in registration
            order
        """
        results = HandlerResults()
        for subscription, result in self._deliver(channel, args, kwargs):
            results.set(subscription.handler, result)
        return results

    def error(self, channel: str, reason: Any) -> None:
        """
        Signal a failure to the error handlers on a channel.

        Subscriptions without an error handler are skipped. With no error
        handler registered the failure is dropped.
        """
        for _ in self._deliver(channel, (reason,), {}, errors=True):
            pass

    def promise(
        self,
        channel: str,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> asyncio.Future:
        """
        Wait for the next emission or error on a channel.

        Usage:
            value = await bus.promise("ready")

        Returns:
            Future resolving with the first emitted argument, or rejecting
            with the reason passed to ``error``
        """
        return create_promise(self, channel, loop)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def subscribers(self) -> dict[str, list[EventHandler]]:
        """Snapshot of channel names to their handlers, in order."""
        with self._lock:
            return {
                channel: [entry.handler for entry in entries.values()]
                for channel, entries in self._subscribers.items()
            }

    def channels(self) -> list[str]:
        with self._lock:
            return list(self._subscribers)

    def listener_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, ()))

    def get_dead_letters(self, limit: int = 100) -> list[DeadLetter]:
        """Get the most recent isolated handler faults, oldest first."""
        if limit <= 0:
            return []
        return list(self._dead_letters)[-limit:]

    def clear_dead_letters(self) -> int:
        count = len(self._dead_letters)
        self._dead_letters.clear()
        return count

    def get_stats(self) -> dict[str, Any]:
        """Get registry statistics."""
        with self._lock:
            total = sum(len(entries) for entries in self._subscribers.values())
            once = sum(
                1
                for entries in self._subscribers.values()
                for subscription in entries.values()
                if subscription.once
            )
            channels = len(self._subscribers)

        return {
            "channels": channels,
            "total_subscriptions": total,
            "once_subscriptions": once,
            "dead_letters": len(self._dead_letters),
            "isolate_faults": self.config.isolate_faults,
        }


# =============================================================================
# Global Instance
# =============================================================================

_registry: Registry | None = None
_registry_lock = threading.Lock()


def get_registry() -> Registry:
    """Get or create the shared registry, configured from the environment."""
    global _registry
    if _registry is None:
        with _registry_lock:
            if _registry is None:
                _registry = Registry(RegistryConfig.from_env())
    return _registry


def reset_registry() -> None:
    """Drop the shared registry; the next ``get_registry`` builds a new one."""
    global _registry
    with _registry_lock:
        _registry = None


# =============================================================================
# Convenience Functions
# =============================================================================


def subscribe(
    channel: str,
    handler: EventHandler | None = None,
    error_handler: ErrorHandler | None = None,
    once: bool = False,
):
    """
    Subscribe on the shared registry (can be used as decorator).

    Usage:
        @subscribe("model.loaded")
        def on_loaded(name):
            ...

        # Or:
        subscribe("model.loaded", handler)
    """
    bus = get_registry()
    add = bus.once if once else bus.on

    if handler is not None:
        return add(channel, handler, error_handler)

    def decorator(fn: EventHandler) -> EventHandler:
        add(channel, fn, error_handler)
        return fn

    return decorator


def on(
    channel: str, handler: EventHandler, error_handler: ErrorHandler | None = None
) -> Disposable:
    """Subscribe on the shared registry."""
    return get_registry().on(channel, handler, error_handler)


def once(
    channel: str, handler: EventHandler, error_handler: ErrorHandler | None = None
) -> Disposable:
    """Subscribe once on the shared registry."""
    return get_registry().once(channel, handler, error_handler)


def off(channel: str, handler: EventHandler) -> bool:
    """Unsubscribe from the shared registry."""
    return get_registry().off(channel, handler)


unsubscribe = off


def off_all(channel: str) -> None:
    """Remove every handler from a channel on the shared registry."""
    get_registry().off_all(channel)


def destroy() -> None:
    """Remove every channel from the shared registry."""
    get_registry().destroy()


def emit(channel: str, *args: Any, **kwargs: Any) -> None:
    """Emit on the shared registry."""
    get_registry().emit(channel, *args, **kwargs)


publish = emit


def gather(channel: str, *args: Any, **kwargs: Any) -> list[Any]:
    """Gather results on the shared registry."""
    return get_registry().gather(channel, *args, **kwargs)


def gather_map(channel: str, *args: Any, **kwargs: Any) -> HandlerResults:
    """Gather results keyed by handler on the shared registry."""
    return get_registry().gather_map(channel, *args, **kwargs)


def error(channel: str, reason: Any) -> None:
    """Signal a failure on the shared registry."""
    get_registry().error(channel, reason)


def promise(
    channel: str,
    *,
    loop: asyncio.AbstractEventLoop | None = None,
) -> asyncio.Future:
    """Wait for the next emission on the shared registry."""
    return get_registry().promise(channel, loop=loop)
