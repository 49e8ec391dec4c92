"""
Bounce runtime library.

Runs functions written in continuation-passing style on a trampoline, so that recursion depth is limited by memory
rather than by the host call stack.  Suspended computations are plain values and may be stepped, saved and resumed.
"""
import logging

from .continuation import (BounceError, InvalidContinuation, Continuation, Call, make_continuation, is_continuation,
                           apply_continuation)
from .protocol import (Done, Pending, StepResult, SerializationError, identity, give, call, cps, is_done, is_pending,
                       encode, decode, dumps, loads)
from .combinators import sequence, then
from .run import run, step_once, resume, checkpoint, select_chk_manager, Trampoline, StepBudgetExceeded
from .scheduler import Scheduler, interleave


def set_logging_level(level) -> None:
    """Sets the logging level for the runtime's loggers."""
    logging.getLogger(__name__).setLevel(level)
