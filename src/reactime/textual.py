"""Textual integration for reactime. Opt-in — requires textual.

TextualScheduler runs reactime timers on a Textual app's event loop, so
debounce/every/for_signal updates land on the UI thread. bind() connects a
signal to a widget-updating effect with the guards a live widget tree needs.
"""

import logging
import queue
import threading
import time
from contextlib import contextmanager

from textual.css.query import NoMatches

from reactime._tracking import graph_lock
from reactime.timer import Scheduler

logger = logging.getLogger("reactime.textual")

_STOP = object()

# Module-owned pause state — keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend bound effects during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


class TextualScheduler(Scheduler):
    """Scheduler backed by app.set_timer(). Create it on the app's thread.

    Timers must be armed from that thread too: push signals from workers
    through app.call_from_thread(), otherwise arming raises RuntimeError.
    """

    def __init__(self, app) -> None:
        self._app = app
        self._thread = threading.get_ident()

    def now(self) -> float:
        return time.time()

    def _arm(self, delay, fire):
        if threading.get_ident() != self._thread:
            raise RuntimeError(
                "TextualScheduler timers must be started on the app thread; "
                "use app.call_from_thread() to push signals from workers"
            )
        return self._app.set_timer(delay, fire)

    def _disarm(self, timer) -> None:
        # Off-thread, the handle's cancelled state already keeps fire() inert.
        if threading.get_ident() == self._thread:
            timer.stop()


def bind(app, signal, effect):
    """Subscribe effect to signal, safely bridged to Textual widgets.

    Skips while the app is paused or not running, swallows NoMatches from
    widget queries. Pushes from the binding thread run effect synchronously,
    so its errors reach the caller of set(). Pushes from other threads are
    queued and delivered in order by a background thread through
    call_from_thread, so the pushing thread never waits on the app while it
    holds the graph lock; their errors are logged.
    Returns the unbind function.
    """
    _main = threading.get_ident()
    outbox = queue.SimpleQueue()
    drainer = None

    def _drain():
        while True:
            value = outbox.get()
            if value is _STOP:
                return
            try:
                app.call_from_thread(_safe, value)
            except Exception:
                logger.exception("Bound effect failed for %r", signal)

    def _guarded(value):
        nonlocal drainer
        if not is_safe(app):
            return
        if threading.get_ident() == _main:
            _safe(value)
            return
        if drainer is None:
            drainer = threading.Thread(target=_drain, name="reactime-bind", daemon=True)
            drainer.start()
        outbox.put(value)

    def _safe(value):
        try:
            effect(value)
        except NoMatches:
            pass

    unsubscribe = signal.subscribe(_guarded)

    def _unbind():
        with graph_lock:
            unsubscribe()
            if drainer is not None:
                outbox.put(_STOP)

    return _unbind
