"""Custom logging function to ensure format conformity."""
from contextlib import contextmanager
import sys
import time
from typing import Any, Callable, Generator, Optional

from .consts import RunID, StepNo
from .continuation import Continuation


def log(run_id: RunID, step: StepNo, msg: str, *, timestamp: Optional[float] = None) -> None:
    """Writes a log entry to stderr."""
    timestamp = timestamp or time.time()
    time_micro = int(timestamp * 1e6)
    print(f"[{run_id}, step={step}, time={time_micro}] {msg}", file=sys.stderr)
    sys.stderr.flush()


def _log_outcome(run_id: RunID, step: StepNo, event: str, start: float, ok: bool) -> None:
    end = time.time()
    outcome = "end" if ok else "failed"
    log(run_id, step, f"{outcome}: {event} ({(end - start) * 1e3:.1f} ms)", timestamp=end)


@contextmanager
def log_duration(run_id: RunID, step: StepNo, event: str) -> Generator[None, None, None]:
    """
    Logs the start and end of an event executed inside this context manager.

    The end entry gives the elapsed time and reads "failed" instead of "end" if the event raised.
    """
    start = time.time()
    log(run_id, step, "begin: " + event, timestamp=start)
    ok = False
    try:
        yield
        ok = True
    finally:
        _log_outcome(run_id, step, event, start, ok)


@contextmanager
def log_at_end(run_id: RunID, step: StepNo, event: str) -> Generator[None, None, None]:
    """Like `log_duration`, but only logs the end of the event."""
    start = time.time()
    ok = False
    try:
        yield
        ok = True
    finally:
        _log_outcome(run_id, step, event, start, ok)


def log_trace(run_id: RunID) -> Callable[[Continuation, Any], None]:
    """
    Returns a driver observer that logs every continuation application, in the manner of Scheme's `trace`.

    The "step" field of each entry counts applications, which includes return frames unwound within a step.
    """
    count = 0

    def observer(k: Continuation, value: Any) -> None:
        nonlocal count
        count += 1
        if not isinstance(k, Continuation):
            log(run_id, StepNo(count), f"apply non-continuation {k!r}")
        elif k.is_call:
            log(run_id, StepNo(count), f"call {k.describe()}")
        else:
            log(run_id, StepNo(count), f"return {value!r} -> {k.describe()}")

    return observer
