"""
Promise bridge: await the next emission on a channel.

A promise is a single one-shot subscription whose handler resolves an
``asyncio.Future`` and whose error-handler rejects it. Because both sides
live on the same entry, whichever fires first retires the other.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

from relaybus.logging_config import get_logger

if TYPE_CHECKING:
    from relaybus.events.bus import Registry

logger = get_logger(__name__)


class ChannelError(Exception):
    """Raised from a promise when ``error`` carries a non-exception reason."""

    def __init__(self, channel: str, reason: Any, message: str | None = None):
        self.channel = channel
        self.reason = reason
        self.message = message or f"Channel '{channel}' signalled an error: {reason!r}"
        super().__init__(self.message)


def _as_exception(channel: str, reason: Any) -> Exception:
    # Futures refuse StopIteration, so it gets wrapped like any plain value.
    if isinstance(reason, Exception) and not isinstance(reason, StopIteration):
        return reason
    return ChannelError(channel, reason)


def create_promise(
    registry: Registry,
    channel: str,
    loop: asyncio.AbstractEventLoop | None = None,
) -> asyncio.Future:
    """
    Create a future settled by the next ``emit`` or ``error`` on a channel.

    Args:
        registry: Registry to subscribe on
        channel: Channel name
        loop: Loop owning the future (defaults to the running loop)

    Returns:
        Future resolving with the first emitted argument (None when the
        emission had no arguments) or rejecting with the error reason.
        Cancelling the future retires the pending subscription.
    """
    if loop is None:
        loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _settle(apply) -> None:
        if loop.is_closed():
            logger.warning("promise_loop_closed", channel=channel)
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is loop:
            apply()
        else:
            loop.call_soon_threadsafe(apply)

    def _set_result(value: Any) -> None:
        if not future.done():
            future.set_result(value)

    def _set_exception(exc: Exception) -> None:
        if not future.done():
            future.set_exception(exc)

    def resolve(*args: Any, **kwargs: Any) -> None:
        value = args[0] if args else None
        logger.debug("promise_settled", channel=channel, outcome="resolved")
        _settle(lambda: _set_result(value))

    def reject(reason: Any) -> None:
        exc = _as_exception(channel, reason)
        logger.debug("promise_settled", channel=channel, outcome="rejected")
        _settle(lambda: _set_exception(exc))

    disposable = registry.once(channel, resolve, reject)
    future.add_done_callback(lambda _: disposable.dispose())
    return future
