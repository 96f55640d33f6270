"""for_signal — step through an iterable at a fixed rate, restarting on change.

Every push of an argument (or of the range, when it is a signal) cancels the
running iteration before a new IterationState exists, so an abandoned run
never delivers another value.
"""

from __future__ import annotations

import weakref
from typing import Any, Callable, Iterable, TypeVar

from reactime.signal import Signal, is_push, pull_args
from reactime.timer import Scheduler, TimerSlot, get_scheduler

T = TypeVar("T")

_DONE = object()


class IterationState:
    """Iterator plus cursor. ``current`` is the next element to deliver."""

    __slots__ = ("_iterator", "cursor", "current")

    def __init__(self, iterable: Iterable[Any]) -> None:
        self._iterator = iter(iterable)
        self.cursor = 0
        self.current = next(self._iterator, _DONE)

    @property
    def exhausted(self) -> bool:
        return self.current is _DONE

    def advance(self) -> None:
        self.current = next(self._iterator, _DONE)
        self.cursor += 1

    def __repr__(self) -> str:
        state = "exhausted" if self.exhausted else f"at {self.cursor}"
        return f"IterationState({state})"


def for_signal(
    f: Callable[..., T],
    *args: Any,
    range: Iterable[Any] | Signal[Iterable[Any]] = (1,),
    fps: float = 1,
    scheduler: Scheduler | None = None,
) -> Signal[T | None]:
    """Signal stepping through f(*args, i) for i in range, one step every 1/fps seconds.

    Signal arguments are replaced by their values when a run starts. A push
    of any argument, or of range itself, abandons the current run and starts
    over. The initial value is f(*args, first) for the first element (None for
    an empty range); ticks then deliver every element, the first included.

    The returned signal's ``state`` is its TimerSlot.
    """
    if not fps > 0:
        raise ValueError(f"fps must be > 0, got {fps!r}")
    scheduler = get_scheduler(scheduler)
    interval = 1 / fps
    slot = TimerSlot()

    def _snapshot() -> tuple[list[Any], IterationState]:
        (iterable,) = pull_args([range])
        return pull_args(args), IterationState(iterable)

    def _run(target: Signal[T | None], values: list[Any], state: IterationState) -> None:
        def _tick(res: Signal[T | None]) -> None:
            if state.exhausted:
                slot.exhaust()
                return
            res.set(f(*values, state.current))
            state.advance()

        slot.replace(lambda: scheduler.schedule_periodic(interval, _tick, target=target))

    values, state = _snapshot()
    res: Signal[T | None] = Signal(
        None if state.exhausted else f(*values, state.current), state=slot
    )
    ref = weakref.ref(res)

    def _on_push(_value: Any) -> None:
        slot.cancel()
        target = ref()
        if target is None:
            return
        _run(target, *_snapshot())

    for arg in (*args, range):
        if is_push(arg):
            res.follow(arg, _on_push)
    res.on_dispose(slot.cancel)
    _run(res, values, state)
    return res
