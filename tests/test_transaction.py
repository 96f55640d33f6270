"""Tests for transactions — batched derivation re-runs."""

from reactime import (
    ManualScheduler,
    Signal,
    autorun,
    get_pending_count,
    transaction,
)


class TestTransaction:
    def test_batches_updates(self):
        a = Signal(0)
        b = Signal(0)
        log = []
        autorun(lambda: log.append((a.get(), b.get())))

        with transaction():
            a.set(10)
            b.set(20)

        # (10, 20), never the intermediate (10, 0)
        assert log == [(0, 0), (10, 20)]

    def test_nested_transactions(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        with transaction():
            s.set(1)
            with transaction():
                s.set(2)
            s.set(3)

        assert log == [0, 3]

    def test_defers_derivations(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        with transaction():
            s.set(10)
            assert get_pending_count() == 1
            assert log == [0]

        assert log == [0, 10]
        assert get_pending_count() == 0

    def test_subscribers_see_every_push(self):
        s = Signal(0)
        received = []
        s.subscribe(received.append)

        with transaction():
            s.set(1)
            s.set(2)

        assert received == [1, 2]

    def test_flushes_on_exception(self):
        s = Signal(0)
        log = []
        autorun(lambda: log.append(s.get()))

        try:
            with transaction():
                s.set(5)
                raise RuntimeError("oops")
        except RuntimeError:
            pass

        assert log == [0, 5]


class TestTimerTicks:
    def test_tick_setting_two_signals_is_one_update(self):
        clock = ManualScheduler()
        x = Signal(0)
        y = Signal(0)
        log = []
        autorun(lambda: log.append((x.get(), y.get())))

        def _move():
            x.set(x.value + 1)
            y.set(y.value + 1)

        clock.schedule_periodic(0.5, _move)
        clock.advance(1)
        assert log == [(0, 0), (1, 1), (2, 2)]
