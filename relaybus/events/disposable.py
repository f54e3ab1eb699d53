"""
Disposable subscription handle.
"""

from __future__ import annotations

from collections.abc import Callable


class Disposable:
    """
    Releases exactly one subscription.

    Returned by ``Registry.on`` and ``Registry.once``. Calling ``dispose``
    more than once is a no-op. The handle is also callable with no
    arguments and works as a context manager that disposes on exit.

    Example:
        with bus.on("tick", handler):
            bus.emit("tick", 1)   # handler runs
        bus.emit("tick", 2)       # handler no longer registered
    """

    __slots__ = ("_release", "_disposed")

    def __init__(self, release: Callable[[], object]):
        self._release = release
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        release, self._release = self._release, None
        release()

    def __call__(self) -> None:
        self.dispose()

    def __enter__(self) -> Disposable:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.dispose()
        return False

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        return f"<Disposable {state}>"
