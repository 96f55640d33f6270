"""Tests for TimerHandle, TimerSlot and the schedulers."""

import gc
import threading

import pytest

import reactime.timer as _timer_mod
from reactime._tracking import graph_lock
from reactime import (
    ManualScheduler,
    Signal,
    ThreadScheduler,
    TimerSlot,
    TimerState,
    get_scheduler,
    set_error_handler,
    set_scheduler,
)


def _collect_errors():
    """Install a capturing error handler. Returns the list and a restore function."""
    errors = []
    old = _timer_mod._error_handler
    set_error_handler(lambda handle, exc: errors.append((handle, exc)))
    return errors, lambda: set_error_handler(old)


class TestOneShot:
    def test_fires_once_after_delay(self):
        clock = ManualScheduler()
        calls = []
        handle = clock.schedule_once(1.0, lambda: calls.append(clock.now()))
        clock.advance(0.5)
        assert calls == []
        clock.advance(0.5)
        assert calls == [1.0]
        clock.advance(5)
        assert calls == [1.0]
        assert handle.state is TimerState.FIRED

    def test_cancel_before_fire(self):
        clock = ManualScheduler()
        calls = []
        handle = clock.schedule_once(1.0, lambda: calls.append(1))
        handle.cancel()
        clock.advance(2)
        assert calls == []
        assert handle.state is TimerState.CANCELLED
        assert clock.pending == 0

    def test_cancel_is_idempotent_and_keeps_fired_state(self):
        clock = ManualScheduler()
        handle = clock.schedule_once(0.5, lambda: None)
        clock.advance(1)
        handle.cancel()
        handle.cancel()
        assert handle.state is TimerState.FIRED

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            ManualScheduler().schedule_once(-1, lambda: None)

    def test_target_is_passed_and_held_weakly(self):
        clock = ManualScheduler()
        target = Signal(0)
        handle = clock.schedule_once(1, lambda s: s.set(s.value + 1), target=target)
        clock.advance(1)
        assert target.value == 1

        other = Signal(0)
        handle = clock.schedule_once(1, lambda s: s.set(1), target=other)
        del other
        gc.collect()
        clock.advance(1)
        assert handle.state is TimerState.ORPHANED


class TestPeriodic:
    def test_fires_every_interval(self):
        clock = ManualScheduler()
        times = []
        clock.schedule_periodic(0.25, lambda: times.append(clock.now()))
        clock.advance(1)
        assert times == [0.25, 0.5, 0.75, 1.0]

    def test_initial_delay(self):
        clock = ManualScheduler()
        times = []
        clock.schedule_periodic(0.5, lambda: times.append(clock.now()), initial_delay=0)
        clock.advance(1)
        assert times == [0.0, 0.5, 1.0]

    def test_duration_exhausts(self):
        clock = ManualScheduler()
        times = []
        handle = clock.schedule_periodic(0.5, lambda: times.append(clock.now()), duration=1.5)
        clock.advance(10)
        assert times == [0.5, 1.0, 1.5]
        assert handle.state is TimerState.EXHAUSTED
        assert clock.pending == 0

    def test_cancel_stops_future_ticks(self):
        clock = ManualScheduler()
        times = []
        handle = clock.schedule_periodic(0.5, lambda: times.append(clock.now()))
        clock.advance(1)
        handle.cancel()
        clock.advance(5)
        assert times == [0.5, 1.0]
        assert handle.state is TimerState.CANCELLED

    def test_cancel_from_inside_callback(self):
        clock = ManualScheduler()
        ticks = []

        def _tick():
            ticks.append(clock.now())
            if len(ticks) == 2:
                handle.cancel()

        handle = clock.schedule_periodic(0.5, _tick)
        clock.advance(5)
        assert ticks == [0.5, 1.0]

    def test_exhaust_from_inside_callback(self):
        clock = ManualScheduler()
        handle = clock.schedule_periodic(0.5, lambda: handle.exhaust())
        clock.advance(5)
        assert handle.state is TimerState.EXHAUSTED
        assert handle.ticks == 1

    def test_orphaned_when_target_collected(self):
        clock = ManualScheduler()
        target = Signal(0)
        handle = clock.schedule_periodic(0.5, lambda s: s.set(s.value + 1), target=target)
        clock.advance(1)
        assert target.value == 2
        del target
        gc.collect()
        clock.advance(1)
        assert handle.state is TimerState.ORPHANED
        assert handle.ticks == 2

    def test_interval_must_be_positive(self):
        with pytest.raises(ValueError):
            ManualScheduler().schedule_periodic(0, lambda: None)


class TestFailures:
    def test_failed_callback_is_reported_and_stops(self):
        errors, restore = _collect_errors()
        try:
            clock = ManualScheduler()

            def _boom():
                raise ValueError("boom")

            handle = clock.schedule_periodic(0.5, _boom)
            clock.advance(5)
            assert handle.state is TimerState.FAILED
            assert isinstance(handle.error, ValueError)
            assert handle.ticks == 1
            assert errors == [(handle, handle.error)]
        finally:
            restore()

    def test_default_handler_logs(self, caplog):
        old = _timer_mod._error_handler
        set_error_handler(None)
        try:
            clock = ManualScheduler()
            clock.schedule_once(0, lambda: 1 / 0)
            with caplog.at_level("ERROR", logger="reactime.timer"):
                clock.advance(0)
            assert "Timer callback failed" in caplog.text
        finally:
            set_error_handler(old)


class TestTimerSlot:
    def test_replace_cancels_previous(self):
        clock = ManualScheduler()
        slot = TimerSlot()
        calls = []
        first = slot.replace(lambda: clock.schedule_once(1, lambda: calls.append("first")))
        second = slot.replace(lambda: clock.schedule_once(1, lambda: calls.append("second")))
        clock.advance(2)
        assert calls == ["second"]
        assert first.state is TimerState.CANCELLED
        assert second.state is TimerState.FIRED
        assert slot.handle is second

    def test_cancel_on_empty_slot(self):
        slot = TimerSlot()
        slot.cancel()
        assert not slot.active


class TestManualScheduler:
    def test_fires_in_due_order(self):
        clock = ManualScheduler()
        order = []
        clock.schedule_once(2, lambda: order.append("late"))
        clock.schedule_once(1, lambda: order.append("early"))
        clock.advance(3)
        assert order == ["early", "late"]
        assert clock.now() == 3

    def test_cannot_go_backwards(self):
        with pytest.raises(ValueError):
            ManualScheduler().advance(-1)


class TestThreadScheduler:
    def test_one_shot_fires(self):
        scheduler = ThreadScheduler()
        fired = threading.Event()
        handle = scheduler.schedule_once(0.01, fired.set)
        assert fired.wait(timeout=2)
        assert handle.state is TimerState.FIRED or handle.ticks == 1

    def test_cancel_prevents_fire(self):
        scheduler = ThreadScheduler()
        fired = threading.Event()
        handle = scheduler.schedule_once(0.05, fired.set)
        handle.cancel()
        assert not fired.wait(timeout=0.2)
        assert handle.state is TimerState.CANCELLED

    def test_cancel_while_fire_waits_for_lock(self):
        firing = threading.Event()
        threads = []

        class _Recording(ThreadScheduler):
            def _arm(self, delay, fire):
                def _fire():
                    firing.set()
                    fire()

                t = super()._arm(delay, _fire)
                threads.append(t)
                return t

        calls = []
        with graph_lock:
            handle = _Recording().schedule_once(0, lambda: calls.append(1))
            assert firing.wait(timeout=2)
            # Let the timer thread reach graph_lock and block on it.
            threading.Event().wait(timeout=0.05)
            handle.cancel()
        threads[0].join(timeout=2)
        assert calls == []
        assert handle.state is TimerState.CANCELLED
        assert handle.ticks == 0

    def test_periodic_ticks(self):
        scheduler = ThreadScheduler()
        done = threading.Event()
        ticks = []

        def _tick():
            ticks.append(1)
            if len(ticks) == 3:
                done.set()

        handle = scheduler.schedule_periodic(0.01, _tick)
        assert done.wait(timeout=2)
        handle.cancel()
        count = len(ticks)
        threading.Event().wait(timeout=0.1)
        assert len(ticks) == count
        assert handle.state is TimerState.CANCELLED


class TestDefaultScheduler:
    def test_set_and_restore(self):
        old = _timer_mod._default_scheduler
        try:
            clock = ManualScheduler()
            set_scheduler(clock)
            assert get_scheduler() is clock
            set_scheduler(None)
            assert isinstance(get_scheduler(), ThreadScheduler)
            explicit = ManualScheduler()
            assert get_scheduler(explicit) is explicit
        finally:
            _timer_mod._default_scheduler = old
