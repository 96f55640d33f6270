"""Pull signals — derived values recomputed lazily on read.

A Computed wraps a function. When evaluated, it tracks which signals the
function reads and caches the result. When any dependency pushes, the cache is
marked invalid; the next read re-evaluates.

Subclasses change *when* an invalid cache is recomputed by overriding
_refresh() (see reactime.rate.Throttle).
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from reactime._tracking import current_derivation, graph_lock, schedule

T = TypeVar("T")

_UNSET = object()


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_fn", "_value", "_dirty", "_dependencies", "_observers", "__weakref__")

    def __init__(self, fn: Callable[[], T]) -> None:
        self._fn = fn
        self._value = _UNSET
        self._dirty = True
        self._dependencies: set = set()
        self._observers: set = set()

    @property
    def valid(self) -> bool:
        """False when a dependency pushed since the last computation."""
        return not self._dirty

    def get(self) -> T:
        """Read the computed value. Recomputes if invalid."""
        with graph_lock:
            self._track_reader()
            self._refresh()
            return self._value

    def _track_reader(self) -> None:
        derivation = current_derivation.get()
        if derivation is not None:
            self._observers.add(derivation)
            derivation._dependencies.add(self)

    def _refresh(self) -> None:
        if self._dirty:
            self._recompute()

    def _recompute(self) -> None:
        """Re-evaluate the function, re-tracking dependencies."""
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

        token = current_derivation.set(self)
        try:
            self._value = self._fn()
        finally:
            current_derivation.reset(token)

        self._dirty = False

    def _run(self) -> None:
        """Called when a dependency pushed.

        Marks the cache invalid and propagates to our own observers.
        Recomputation waits for the next get().
        """
        if not self._dirty:
            self._dirty = True
            for observer in list(self._observers):
                schedule(observer)

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def dispose(self) -> None:
        """Disconnect from all dependencies. The next get() starts from scratch."""
        with graph_lock:
            for dep in self._dependencies:
                dep._remove_observer(self)
            self._dependencies.clear()
            self._observers.clear()
            self._dirty = True
            self._value = _UNSET

    def __repr__(self) -> str:
        state = "invalid" if self._dirty else f"cached={self._value!r}"
        name = getattr(self._fn, "__name__", type(self._fn).__name__)
        return f"{type(self).__name__}({name}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        width = Signal(3)

        @computed
        def area():
            return width.get() ** 2

        area.get()  # 9
        width.set(4)
        area.get()  # 16
    """
    return Computed(fn)
