"""Push signals — value cells that notify their dependents on every update.

A Signal holds exactly one current value and an arbitrary ``state``
side-channel. ``set()`` stores the value and pushes it, immediately, to every
subscriber callback, then schedules every derivation (Computed, Reaction)
that read the signal.

Every set() is an event: equal consecutive values are pushed too. Wrap a
signal in droprepeats() to suppress them.

lift() is the push-derived signal the temporal combinators are built from:
its value is recomputed whenever one of its signal arguments pushes.
"""

from __future__ import annotations

import weakref
from typing import Any, Callable, Generic, Iterable, TypeVar

from reactime._tracking import current_derivation, graph_lock, schedule
from reactime.computed import Computed

T = TypeVar("T")

Disposer = Callable[[], None]


class Signal(Generic[T]):
    """A push-based reactive value cell."""

    __slots__ = (
        "_value",
        "state",
        "_observers",
        "_subscribers",
        "_teardown",
        "_disposed",
        "__weakref__",
    )

    def __init__(self, value: T, *, state: Any = None) -> None:
        self._value = value
        self.state = state
        self._observers: set = set()
        self._subscribers: list[Callable[[T], None]] = []
        self._teardown: list[Disposer] = []
        self._disposed = False

    @property
    def value(self) -> T:
        """The current value, read without registering a dependency."""
        return self._value

    @property
    def disposed(self) -> bool:
        return self._disposed

    def get(self) -> T:
        """Read the value. If inside a derivation, registers the dependency."""
        derivation = current_derivation.get()
        if derivation is not None:
            with graph_lock:
                self._observers.add(derivation)
                derivation._dependencies.add(self)
        return self._value

    def set(self, value: T) -> None:
        """Store value and push it to subscribers, then to derivations."""
        with graph_lock:
            self._value = value
            if self._disposed:
                return
            for callback in list(self._subscribers):
                callback(value)
            for observer in list(self._observers):
                schedule(observer)

    __call__ = set

    def subscribe(self, callback: Callable[[T], None]) -> Disposer:
        """Register a callback for every pushed value. Returns a function that removes it."""
        with graph_lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with graph_lock:
                try:
                    self._subscribers.remove(callback)
                except ValueError:
                    pass  # already removed

        return _unsubscribe

    def follow(self, source: Signal[Any], callback: Callable[[Any], None]) -> None:
        """Subscribe callback to source for as long as this signal lives.

        The subscription ends on dispose() or once this signal is collected,
        so a dropped combinator leaves nothing behind on its upstream.
        callback must not reference this signal strongly.
        """
        disposer = source.subscribe(callback)
        self.on_dispose(disposer)
        weakref.finalize(self, disposer)

    def on_dispose(self, fn: Disposer) -> None:
        """Run fn when this signal is disposed (upstream detach, timer stop)."""
        with graph_lock:
            if self._disposed:
                fn()
            else:
                self._teardown.append(fn)

    def dispose(self) -> None:
        """Detach from upstream and stop owned timers. Later set() only stores the value."""
        with graph_lock:
            if self._disposed:
                return
            self._disposed = True
            self._subscribers.clear()
            for observer in list(self._observers):
                observer._dependencies.discard(self)
            self._observers.clear()
            teardown, self._teardown = self._teardown, []
            for fn in teardown:
                fn()

    def _remove_observer(self, observer) -> None:
        self._observers.discard(observer)

    def __repr__(self) -> str:
        return f"Signal({self._value!r})"


def is_push(obj: object) -> bool:
    return isinstance(obj, Signal)


def is_pull(obj: object) -> bool:
    return isinstance(obj, Computed)


def is_signal(obj: object) -> bool:
    return isinstance(obj, (Signal, Computed))


def pull_args(args: Iterable[Any]) -> list[Any]:
    """Replace signal arguments by their current values; pass everything else through."""
    return [arg.get() if is_signal(arg) else arg for arg in args]


def lift(fn: Callable[..., T], *args: Any) -> Signal[T]:
    """Signal whose value is fn(*values), recomputed when any push argument pushes.

    Usage:
        a = Signal(1)
        b = Signal(2)
        total = lift(lambda x, y: x + y, a, b)
        a.set(10)
        total.value  # 12
    """
    out: Signal[T] = Signal(fn(*pull_args(args)))

    def _on_push(_value: Any) -> None:
        out.set(fn(*pull_args(args)))

    for arg in args:
        if is_push(arg):
            out.on_dispose(arg.subscribe(_on_push))
    return out


def droprepeats(signal: Signal[T]) -> Signal[T]:
    """Signal that only pushes when the value differs from the previous one."""
    out: Signal[T] = Signal(signal.value)

    def _on_push(value: T) -> None:
        if value != out.value:
            out.set(value)

    out.on_dispose(signal.subscribe(_on_push))
    return out
