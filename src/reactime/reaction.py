"""Reactions — side effects triggered by signal changes.

Unlike Computed (lazy, evaluated on read), a Reaction eagerly re-runs its
effect whenever a signal it read pushes.

Two flavors:
- autorun(fn): runs fn immediately, re-runs when any signal it read pushes.
- reaction(data_fn, effect_fn): tracks data_fn, calls effect_fn with the new
  value only when data_fn's result changes.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from reactime._tracking import current_derivation, graph_lock

T = TypeVar("T")


class Reaction:
    """A reactive side effect that re-runs when its dependencies push."""

    __slots__ = ("_fn", "_dependencies", "_disposed")

    def __init__(self, fn: Callable[[], Any]) -> None:
        self._fn = fn
        self._dependencies: set = set()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _untrack(self) -> None:
        for dep in self._dependencies:
            dep._remove_observer(self)
        self._dependencies.clear()

    def _evaluate(self) -> Any:
        self._untrack()
        token = current_derivation.set(self)
        try:
            return self._fn()
        finally:
            current_derivation.reset(token)

    def _run(self) -> None:
        with graph_lock:
            if self._disposed:
                return
            self._evaluate()

    def dispose(self) -> None:
        """Stop this reaction. Disconnects from all dependencies."""
        with graph_lock:
            self._disposed = True
            self._untrack()

    def __repr__(self) -> str:
        state = "disposed" if self._disposed else "active"
        name = getattr(self._fn, "__name__", type(self._fn).__name__)
        return f"{type(self).__name__}({name}, {state})"


class _DataReaction(Reaction):
    """reaction(data_fn, effect_fn): effect_fn only sees changed results of data_fn."""

    __slots__ = ("_effect_fn", "_last_value", "_initialized")

    def __init__(self, data_fn: Callable[[], T], effect_fn: Callable[[T], None]) -> None:
        super().__init__(data_fn)
        self._effect_fn = effect_fn
        self._last_value = None
        self._initialized = False

    def _run(self) -> None:
        with graph_lock:
            if self._disposed:
                return
            new_value = self._evaluate()
            if not self._initialized or new_value != self._last_value:
                self._last_value = new_value
                self._initialized = True
                self._effect_fn(new_value)


def autorun(fn: Callable[[], Any]) -> Reaction:
    """Run fn immediately, then re-run whenever a signal it reads pushes.

    Returns the Reaction (call .dispose() to stop).

    Usage:
        ticks = every(0.5)
        autorun(lambda: print("tick", ticks.get()))
    """
    r = Reaction(fn)
    r._run()
    return r


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], None],
    *,
    fire_immediately: bool = False,
) -> Reaction:
    """Track data_fn's signals; call effect_fn when its result changes.

    Returns the reaction (call .dispose() to stop).

    Usage:
        query = Signal("")
        results = debounce(search, query, delay=0.3)
        reaction(lambda: results.get(), render)
    """
    r = _DataReaction(data_fn, effect_fn)
    if fire_immediately:
        r._run()
    else:
        # Establish dependencies, suppress the initial effect.
        with graph_lock:
            r._last_value = r._evaluate()
            r._initialized = True
    return r
