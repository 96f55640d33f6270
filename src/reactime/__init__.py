"""reactime: time-aware combinators for push/pull reactive signals."""

from importlib.metadata import version as _version

__version__ = _version("reactime")

from reactime._tracking import get_pending_count, transaction
from reactime.signal import Signal, droprepeats, lift, pull_args
from reactime.computed import Computed, computed
from reactime.reaction import Reaction, autorun, reaction
from reactime.errors import PushOnlyError, ReactimeError
from reactime.timer import (
    ManualScheduler,
    Scheduler,
    ThreadScheduler,
    TimerHandle,
    TimerSlot,
    TimerState,
    get_scheduler,
    set_error_handler,
    set_scheduler,
)
from reactime.rate import Throttle, debounce, throttle
from reactime.buffer import Batch, buffer
from reactime.periodic import every, fps, fpswhen
from reactime.iteration import IterationState, for_signal
# textual NOT auto-imported — opt-in only

__all__ = [
    "Signal",
    "droprepeats",
    "lift",
    "pull_args",
    "Computed",
    "computed",
    "Reaction",
    "autorun",
    "reaction",
    "transaction",
    "get_pending_count",
    "ReactimeError",
    "PushOnlyError",
    "Scheduler",
    "ThreadScheduler",
    "ManualScheduler",
    "TimerHandle",
    "TimerSlot",
    "TimerState",
    "get_scheduler",
    "set_scheduler",
    "set_error_handler",
    "debounce",
    "throttle",
    "Throttle",
    "buffer",
    "Batch",
    "every",
    "fps",
    "fpswhen",
    "for_signal",
    "IterationState",
]
