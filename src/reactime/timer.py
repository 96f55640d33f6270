"""Cancellable timers and the schedulers that drive them.

A TimerHandle is one scheduled callback, one-shot or periodic. Firing and
cancelling both take the graph lock, and the cancelled check happens inside
the same critical section as the callback. Once cancel() returns, the callback
never runs again, even if its scheduler thread is already waiting to fire.

Periodic handles can be bounded by a total ``duration`` and can hold their
``target`` weakly: the callback receives the target, and the handle stops
itself once the target has been garbage collected.

Failures inside callbacks are reported to the error handler (logged by
default) and leave the handle in the FAILED state with ``error`` set, so a
dead timer is distinguishable from an exhausted or cancelled one.
"""

from __future__ import annotations

import enum
import heapq
import itertools
import logging
import math
import threading
import time
import weakref
from typing import Any, Callable

from reactime._tracking import graph_lock, transaction

logger = logging.getLogger("reactime.timer")

ErrorHandler = Callable[["TimerHandle", BaseException], None]

_error_handler: ErrorHandler | None = None
_default_scheduler: Scheduler | None = None


class TimerState(enum.Enum):
    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"
    EXHAUSTED = "exhausted"
    ORPHANED = "orphaned"
    FAILED = "failed"

    @property
    def done(self) -> bool:
        return self is not TimerState.PENDING


def set_error_handler(handler: ErrorHandler | None) -> None:
    """Route timer callback failures to handler(handle, exc). None restores logging."""
    global _error_handler
    _error_handler = handler


def report_error(handle: TimerHandle, exc: BaseException) -> None:
    if _error_handler is None:
        logger.error("Timer callback failed: %r", handle, exc_info=exc)
    else:
        _error_handler(handle, exc)


class TimerHandle:
    """One scheduled callback. Create through a Scheduler."""

    __slots__ = (
        "_scheduler",
        "_callback",
        "_interval",
        "_duration",
        "_target",
        "_start",
        "_due",
        "_backend",
        "ticks",
        "state",
        "error",
        "__weakref__",
    )

    def __init__(
        self,
        scheduler: Scheduler,
        callback: Callable[..., Any],
        delay: float,
        interval: float | None = None,
        duration: float = math.inf,
        target: object | None = None,
    ) -> None:
        self._scheduler = scheduler
        self._callback = callback
        self._interval = interval
        self._duration = duration
        self._target = weakref.ref(target) if target is not None else None
        self._start = scheduler.now()
        self._due = self._start + delay
        self._backend = None
        self.ticks = 0
        self.state = TimerState.PENDING
        self.error: BaseException | None = None

    @property
    def periodic(self) -> bool:
        return self._interval is not None

    @property
    def active(self) -> bool:
        return self.state is TimerState.PENDING

    def _arm(self) -> None:
        delay = max(0.0, self._due - self._scheduler.now())
        self._backend = self._scheduler._arm(delay, self._fire)

    def _fire(self) -> None:
        with graph_lock:
            if self.state is not TimerState.PENDING:
                return
            self._backend = None

            target = None
            if self._target is not None:
                target = self._target()
                if target is None:
                    logger.debug("Timer target collected, stopping %r", self)
                    self.state = TimerState.ORPHANED
                    return

            # Judge the duration by when the tick was due, not by how late it
            # ran, so the last tick inside the window survives a busy clock.
            scheduled = self._due - self._start
            if scheduled > self._duration and not math.isclose(scheduled, self._duration):
                logger.debug("Timer duration elapsed, stopping %r", self)
                self.state = TimerState.EXHAUSTED
                return

            self.ticks += 1
            try:
                with transaction():
                    if self._target is None:
                        self._callback()
                    else:
                        self._callback(target)
            except Exception as exc:
                self.state = TimerState.FAILED
                self.error = exc
                report_error(self, exc)
                return

            if self.state is not TimerState.PENDING:
                return  # stopped from inside the callback
            if self._interval is None:
                self.state = TimerState.FIRED
                return

            now = self._scheduler.now()
            due = self._due + self._interval
            if due <= now:
                # Fell behind: skip the missed ticks instead of bursting.
                due += (math.floor((now - due) / self._interval) + 1) * self._interval
            self._due = due
            self._arm()

    def _stop(self, state: TimerState) -> None:
        with graph_lock:
            if self.state is TimerState.PENDING:
                self.state = state
            backend, self._backend = self._backend, None
        if backend is not None:
            self._scheduler._disarm(backend)

    def cancel(self) -> None:
        """Stop the timer. Idempotent; a fired or finished handle is left as is."""
        self._stop(TimerState.CANCELLED)

    def exhaust(self) -> None:
        """Stop the timer as completed normally (iteration finished, duration spent)."""
        self._stop(TimerState.EXHAUSTED)

    def __repr__(self) -> str:
        kind = f"every {self._interval}s" if self._interval is not None else "once"
        return f"TimerHandle({kind}, {self.state.value}, ticks={self.ticks})"


class Scheduler:
    """Clock plus a way to run a function after a delay.

    Subclasses implement now(), _arm(delay, fire) returning a backend token,
    and _disarm(token).
    """

    def now(self) -> float:
        raise NotImplementedError

    def _arm(self, delay: float, fire: Callable[[], None]) -> Any:
        raise NotImplementedError

    def _disarm(self, backend: Any) -> None:
        raise NotImplementedError

    def schedule_once(
        self,
        delay: float,
        callback: Callable[..., Any],
        *,
        target: object | None = None,
    ) -> TimerHandle:
        """Run callback once after delay seconds (callback(target) when target is given)."""
        if delay < 0:
            raise ValueError(f"delay must be >= 0, got {delay!r}")
        handle = TimerHandle(self, callback, delay, target=target)
        with graph_lock:
            handle._arm()
        return handle

    def schedule_periodic(
        self,
        interval: float,
        callback: Callable[..., Any],
        initial_delay: float | None = None,
        *,
        duration: float = math.inf,
        target: object | None = None,
    ) -> TimerHandle:
        """Run callback every interval seconds, first after initial_delay (default interval).

        Stops by itself once ``duration`` seconds have passed since scheduling,
        or once ``target`` has been collected.
        """
        if not interval > 0:
            raise ValueError(f"interval must be > 0, got {interval!r}")
        if initial_delay is None:
            initial_delay = interval
        elif initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {initial_delay!r}")
        handle = TimerHandle(
            self, callback, initial_delay, interval=interval, duration=duration, target=target
        )
        with graph_lock:
            handle._arm()
        return handle


class ThreadScheduler(Scheduler):
    """Wall-clock scheduler firing on daemon threading.Timer threads."""

    def now(self) -> float:
        return time.time()

    def _arm(self, delay: float, fire: Callable[[], None]) -> threading.Timer:
        t = threading.Timer(delay, fire)
        t.daemon = True
        t.start()
        return t

    def _disarm(self, backend: threading.Timer) -> None:
        backend.cancel()


class ManualScheduler(Scheduler):
    """Virtual clock. Nothing fires until advance() moves time forward.

    Drives deterministic tests and frame loops that own their own time step.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._queue: list[list] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def _arm(self, delay: float, fire: Callable[[], None]) -> list:
        entry = [self._now + delay, next(self._seq), fire]
        heapq.heappush(self._queue, entry)
        return entry

    def _disarm(self, backend: list) -> None:
        backend[2] = None

    @property
    def pending(self) -> int:
        """Number of armed, uncancelled firings."""
        return sum(1 for entry in self._queue if entry[2] is not None)

    def advance(self, seconds: float) -> None:
        """Move the clock forward, firing everything due on the way, in due order."""
        if seconds < 0:
            raise ValueError(f"cannot move time backwards ({seconds!r})")
        deadline = self._now + seconds
        while self._queue and self._queue[0][0] <= deadline:
            due, _, fire = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            if fire is not None:
                fire()
        self._now = deadline


class TimerSlot:
    """The single pending timer of one combinator.

    replace() cancels the previous handle before starting the next one, under
    the graph lock, so two handles of one slot are never live together.
    """

    __slots__ = ("_handle",)

    def __init__(self) -> None:
        self._handle: TimerHandle | None = None

    @property
    def handle(self) -> TimerHandle | None:
        return self._handle

    @property
    def active(self) -> bool:
        return self._handle is not None and self._handle.active

    def replace(self, start: Callable[[], TimerHandle]) -> TimerHandle:
        with graph_lock:
            self.cancel()
            self._handle = start()
            return self._handle

    def cancel(self) -> None:
        with graph_lock:
            if self._handle is not None:
                self._handle.cancel()

    def exhaust(self) -> None:
        with graph_lock:
            if self._handle is not None:
                self._handle.exhaust()

    def __repr__(self) -> str:
        return f"TimerSlot({self._handle!r})"


def set_scheduler(scheduler: Scheduler | None) -> None:
    """Set the scheduler used by combinators created without ``scheduler=``.

    Call once at startup, e.g. reactime.set_scheduler(ManualScheduler()) in a
    frame-stepped simulation. None restores the ThreadScheduler default.
    """
    global _default_scheduler
    _default_scheduler = scheduler


def get_scheduler(scheduler: Scheduler | None = None) -> Scheduler:
    """Return scheduler if given, otherwise the process-wide default."""
    global _default_scheduler
    if scheduler is not None:
        return scheduler
    if _default_scheduler is None:
        _default_scheduler = ThreadScheduler()
    return _default_scheduler
