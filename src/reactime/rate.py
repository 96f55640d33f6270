"""Rate control — debounce and throttle.

debounce is push-driven: every push of an input re-arms a one-shot timer,
and f runs only once inputs have been quiet for ``delay`` seconds.

throttle is pull-driven: a Throttle is a Computed whose invalid cache is only
recomputed when at least 1/maxfps seconds have passed since the last
recomputation. Nothing is queued; a pull inside the interval gets the cached
value.
"""

from __future__ import annotations

import weakref
from typing import Any, Callable, TypeVar

from reactime.computed import Computed
from reactime.errors import PushOnlyError
from reactime.signal import Signal, is_pull, is_push, pull_args
from reactime.timer import Scheduler, TimerSlot, get_scheduler

T = TypeVar("T")


def debounce(
    f: Callable[..., T],
    *args: Any,
    delay: float = 1,
    v0: T | None = None,
    scheduler: Scheduler | None = None,
) -> Signal[T]:
    """Signal updated to f(*args) once ``delay`` seconds pass without an input push.

    Signal arguments are replaced by their values when f runs. Only push
    signals can be watched; a Computed argument raises PushOnlyError.
    The initial value is v0, or f(*args) evaluated now when v0 is None.

    The returned signal's ``state`` is its TimerSlot (the pending action).
    """
    if delay < 0:
        raise ValueError(f"delay must be >= 0, got {delay!r}")
    for arg in args:
        if is_pull(arg):
            raise PushOnlyError(
                f"debounce reacts to pushes, but {arg!r} is a pull signal; "
                "pass a Signal (or lift() the computation) instead"
            )
    scheduler = get_scheduler(scheduler)

    slot = TimerSlot()
    debounced: Signal[T] = Signal(f(*pull_args(args)) if v0 is None else v0, state=slot)
    ref = weakref.ref(debounced)

    def _fire(target: Signal[T]) -> None:
        target.set(f(*pull_args(args)))

    def _on_push(_value: Any) -> None:
        target = ref()
        if target is None:
            slot.cancel()
            return
        slot.replace(lambda: scheduler.schedule_once(delay, _fire, target=target))

    for arg in args:
        if is_push(arg):
            debounced.follow(arg, _on_push)
    debounced.on_dispose(slot.cancel)
    return debounced


class Throttle(Computed[T]):
    """Pull signal recomputed at most once per ``min_interval`` seconds."""

    __slots__ = ("_scheduler", "min_interval", "last_update", "_deferred")

    def __init__(self, fn: Callable[[], T], min_interval: float, scheduler: Scheduler) -> None:
        super().__init__(fn)
        self._scheduler = scheduler
        self.min_interval = min_interval
        self._deferred = False
        self._recompute()
        self.last_update = scheduler.now()

    @property
    def deferred(self) -> bool:
        """True while a served value is known to be stale."""
        return self._deferred

    def _refresh(self) -> None:
        if not (self._dirty or self._deferred):
            return
        now = self._scheduler.now()
        if now - self.last_update < self.min_interval:
            # Serve the stale value; the first pull after the interval recomputes.
            self._dirty = False
            self._deferred = True
        else:
            self._recompute()
            self.last_update = now
            self._deferred = False


def throttle(
    f: Callable[..., T],
    *args: Any,
    maxfps: float = 30,
    scheduler: Scheduler | None = None,
) -> Throttle[T]:
    """Pull signal of f(*args) that recomputes at most ``maxfps`` times per second.

    f(*args) is evaluated once immediately. Afterwards, get() recomputes only
    if an argument changed and 1/maxfps seconds have passed since the last
    recomputation.
    """
    if not maxfps > 0:
        raise ValueError(f"maxfps must be > 0, got {maxfps!r}")
    return Throttle(lambda: f(*pull_args(args)), 1 / maxfps, get_scheduler(scheduler))
