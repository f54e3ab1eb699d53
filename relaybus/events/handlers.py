"""
Identity matching for registered handlers.

Handlers are compared by reference, never by ``==`` or ``hash``, so
unhashable callables can subscribe and equal-but-distinct callables stay
separate. Bound methods are the one exception: ``obj.method`` builds a new
object on every access, so two bound methods match when they wrap the same
function on the same instance.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from types import BuiltinMethodType, MethodType
from typing import Any


def same_handler(a: Callable[..., Any], b: Callable[..., Any]) -> bool:
    if a is b:
        return True
    if isinstance(a, MethodType) and isinstance(b, MethodType):
        return a.__self__ is b.__self__ and a.__func__ is b.__func__
    if isinstance(a, BuiltinMethodType) and isinstance(b, BuiltinMethodType):
        return a.__self__ is b.__self__ and a.__name__ == b.__name__
    return False


class HandlerResults(Mapping):
    """
    Results of one ``gather_map`` pass, keyed by handler identity.

    Iterates handlers in delivery order. A handler delivered more than once
    in the pass (a persistent and a one-shot subscription) keeps its latest
    result.
    """

    def __init__(self) -> None:
        self._items: list[tuple[Callable[..., Any], Any]] = []

    def _index(self, handler: Callable[..., Any]) -> int:
        for i, (known, _) in enumerate(self._items):
            if same_handler(known, handler):
                return i
        return -1

    def set(self, handler: Callable[..., Any], result: Any) -> None:
        index = self._index(handler)
        if index < 0:
            self._items.append((handler, result))
        else:
            self._items[index] = (self._items[index][0], result)

    def __getitem__(self, handler: Callable[..., Any]) -> Any:
        index = self._index(handler)
        if index < 0:
            raise KeyError(handler)
        return self._items[index][1]

    def __contains__(self, handler: object) -> bool:
        return callable(handler) and self._index(handler) >= 0

    def __iter__(self) -> Iterator[Callable[..., Any]]:
        return (handler for handler, _ in self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Mapping):
            return NotImplemented
        if len(other) != len(self):
            return False
        for handler, result in other.items():
            if handler not in self or self[handler] != result:
                return False
        return True

    __hash__ = None

    def __repr__(self) -> str:
        return f"HandlerResults({self._items!r})"
