"""Dependency tracking and serialization for the signal graph.

Uses contextvars to track which signals are read during a computed/reaction
evaluation, building the dependency graph automatically.

Every push, derivation run and timer firing happens while holding
``graph_lock``. It is re-entrant: a push may trigger further pushes, and a
timer callback may cancel its own handle.

Batching: inside `with transaction()`, derivation re-runs accumulate and flush
once when the outermost transaction exits. Every timer tick runs as one
transaction, so a tick that sets several signals is a single update.
"""

from __future__ import annotations

import contextvars
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from reactime.computed import Computed
    from reactime.reaction import Reaction

    Derivation = Computed | Reaction

# The currently-evaluating derivation (computed or reaction).
# When set, any Signal.get() call registers itself as a dependency.
current_derivation: contextvars.ContextVar[Derivation | None] = contextvars.ContextVar(
    "current_derivation", default=None
)

# Single logical timeline: pushes, derivation runs, timer fire and timer cancel.
graph_lock = threading.RLock()

# Batch depth counter. Only touched while graph_lock is held.
_batch_depth: int = 0

# Derivations that were invalidated during a batch, awaiting flush.
_pending: set[Derivation] = set()


@contextmanager
def transaction() -> Iterator[None]:
    """Defer derivation re-runs (Computed invalidation, reactions) to the end.

    Holds the graph lock throughout, so no timer fires halfway through.
    Subscribers, and so the temporal combinators, still see every push.

    Usage:
        with transaction():
            width.set(4)
            height.set(3)
    """
    global _batch_depth
    with graph_lock:
        _batch_depth += 1
        try:
            yield
        finally:
            _batch_depth -= 1
            if _batch_depth == 0:
                _flush_pending()


def schedule(derivation: Derivation) -> None:
    """Schedule a derivation for re-evaluation.

    If inside a batch, defers. Otherwise, runs immediately.
    """
    if _batch_depth > 0:
        _pending.add(derivation)
    else:
        derivation._run()


def _flush_pending() -> None:
    while _pending:
        # Derivations may schedule new ones while running.
        batch = list(_pending)
        _pending.clear()
        for derivation in batch:
            derivation._run()


def get_pending_count() -> int:
    """Number of derivations waiting to run. Useful for testing."""
    return len(_pending)
