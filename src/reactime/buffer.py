"""Buffer — batch pushed values by count or by time.

Every push of the input appends to a live list, then re-evaluates the
companion ``flush_due`` signal:

    (now - last_flush) > timespan  or  len(items) >= buf_size

When flush_due is true, a copy of the live list becomes the buffer's value
and the live list is emptied in place. Consumers only ever see copies.

A one-shot timer, re-armed at every flush, also flushes once ``timespan``
seconds pass, so a quiet input still delivers what it pushed.
"""

from __future__ import annotations

import logging
import math
import weakref
from typing import Generic, TypeVar

from reactime.errors import PushOnlyError
from reactime.signal import Signal, is_push
from reactime.timer import Scheduler, TimerSlot, get_scheduler

logger = logging.getLogger("reactime.buffer")

T = TypeVar("T")


class Batch(Generic[T]):
    """Live state of one buffer: pending items and the time of the last flush."""

    __slots__ = ("items", "last_flush", "item_type", "flush_due", "timer")

    def __init__(self, now: float) -> None:
        self.items: list[T] = []
        self.last_flush = now
        self.item_type: type | None = None
        self.flush_due: Signal[bool] = Signal(False)
        self.timer = TimerSlot()

    def take(self, now: float) -> list[T]:
        frame = list(self.items)
        self.items.clear()
        self.last_flush = now
        return frame

    def __repr__(self) -> str:
        return f"Batch({len(self.items)} items, last_flush={self.last_flush})"


def buffer(
    input: Signal[T],
    buf_size: float = math.inf,
    timespan: float = 1,
    type_stable: bool = False,
    *,
    emit_empty: bool = False,
    scheduler: Scheduler | None = None,
) -> Signal[list[T]]:
    """Signal of batches of input's pushed values.

    A batch is emitted when buf_size values have accumulated or timespan
    seconds have passed since the previous batch, whichever comes first. The
    value is the last emitted batch, or [] before the first one.

    With type_stable=True the first value fixes the element type and a value
    of another type raises TypeError from the push. Empty batches are only
    emitted with emit_empty=True.

    The returned signal's ``state`` is its Batch.
    """
    if not is_push(input):
        raise PushOnlyError(f"buffer needs a push signal, got {input!r}")
    if buf_size < 1:
        raise ValueError(f"buf_size must be >= 1, got {buf_size!r}")
    if not timespan > 0:
        raise ValueError(f"timespan must be > 0, got {timespan!r}")
    scheduler = get_scheduler(scheduler)

    batch: Batch[T] = Batch(scheduler.now())
    frames: Signal[list[T]] = Signal([], state=batch)
    ref = weakref.ref(frames)

    def _arm(target: Signal[list[T]]) -> None:
        batch.timer.replace(lambda: scheduler.schedule_once(timespan, _on_timeout, target=target))

    def _on_timeout(_target: Signal[list[T]]) -> None:
        batch.flush_due.set(True)

    def _flush(due: bool) -> None:
        if not due:
            return
        target = ref()
        if target is None:
            batch.timer.cancel()
            return
        frame = batch.take(scheduler.now())
        _arm(target)
        if frame or emit_empty:
            logger.debug("Flushing %d buffered values", len(frame))
            target.set(frame)

    def _on_push(value: T) -> None:
        if ref() is None:
            return
        if type_stable:
            if batch.item_type is None:
                batch.item_type = type(value)
            elif not isinstance(value, batch.item_type):
                raise TypeError(
                    f"buffer is type-stable for {batch.item_type.__name__}, "
                    f"got {type(value).__name__}"
                )
        batch.items.append(value)
        elapsed = scheduler.now() - batch.last_flush
        batch.flush_due.set(elapsed > timespan or len(batch.items) >= buf_size)

    batch.flush_due.subscribe(_flush)
    frames.follow(input, _on_push)
    frames.on_dispose(batch.timer.cancel)
    _arm(frames)
    return frames
