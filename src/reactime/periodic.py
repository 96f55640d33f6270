"""Periodic emitters — every, fps and fpswhen.

Each emitter is a signal of timestamps pushed by a periodic TimerHandle. The
handle holds the signal weakly and stops itself once the signal is collected
or ``duration`` seconds have passed since activation.
"""

from __future__ import annotations

import math
import weakref

from reactime.signal import Signal, droprepeats
from reactime.timer import Scheduler, TimerHandle, TimerSlot, get_scheduler


def _check_rate(name: str, value: float) -> None:
    if not value > 0:
        raise ValueError(f"{name} must be > 0, got {value!r}")


def activate_timer(
    signal: Signal[float], dt: float, duration: float, scheduler: Scheduler
) -> TimerHandle:
    """Push scheduler.now() into signal every dt seconds for duration seconds."""

    def _tick(target: Signal[float]) -> None:
        target.set(scheduler.now())

    return scheduler.schedule_periodic(dt, _tick, duration=duration, target=signal)


def every(
    dt: float, duration: float = math.inf, *, scheduler: Scheduler | None = None
) -> Signal[float]:
    """Signal updated to the current timestamp every dt seconds, for duration seconds.

    The signal's ``state`` is the driving TimerHandle.
    """
    _check_rate("dt", dt)
    scheduler = get_scheduler(scheduler)
    res = Signal(scheduler.now())
    res.state = activate_timer(res, dt, duration, scheduler)
    res.on_dispose(res.state.cancel)
    return res


def fps(
    freq: float, duration: float = math.inf, *, scheduler: Scheduler | None = None
) -> Signal[float]:
    """Signal updated to the current timestamp freq times a second, for duration seconds."""
    _check_rate("freq", freq)
    return every(1 / freq, duration, scheduler=scheduler)


def fpswhen(
    switch: Signal[bool],
    freq: float,
    duration: float = math.inf,
    *,
    scheduler: Scheduler | None = None,
) -> Signal[float]:
    """Like fps(), but only ticking while switch is true.

    Each change of switch to true starts a fresh timer (with a fresh duration);
    a change to false stops it. Repeated equal values are ignored. The
    signal's ``state`` is its TimerSlot.
    """
    _check_rate("freq", freq)
    scheduler = get_scheduler(scheduler)
    slot = TimerSlot()
    res = Signal(scheduler.now(), state=slot)
    ref = weakref.ref(res)

    def _on_switch(on: bool) -> None:
        target = ref()
        if target is None or not on:
            slot.cancel()
            return
        slot.replace(lambda: activate_timer(target, 1 / freq, duration, scheduler))

    # switched is owned by res: it goes away with res, not with switch.
    switched = droprepeats(switch)
    res.follow(switched, _on_switch)
    res.on_dispose(switched.dispose)
    weakref.finalize(res, switched.dispose)
    res.on_dispose(slot.cancel)
    if switched.value:
        _on_switch(True)
    return res
