"""
The trampoline: runs CPS computations with constant host stack depth.

A computation is a step result.  The driver resumes `Pending` results until it reaches `Done`.  One *step* is one
logical call: `step_once` keeps applying continuations until the next call is about to be entered (a `Pending` result
whose continuation is a `Call`) or the computation is done.  Return frames are unwound in the same flat loop, so a
function takes as many steps as its direct recursive version makes calls.

Termination is the client's responsibility.  A CPS function that never reaches a base case makes `run` loop forever
unless a step budget is set (`max_steps`, or the BOUNCE_MAX_STEPS environment variable).  A continuation chain
that never enters a call isn't covered by the budget either, since the whole chain is a single step.
"""
import os
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from .chk_manager import CheckpointManager
from .consts import CheckpointID, RunID, StepNo, MAIN_RUN_ID, INITIAL_STEP
from .continuation import BounceError, Continuation, apply_continuation
from .global_state.step_ctrl import StepControl
from .logging import log, log_at_end
from .protocol import Done, Pending, SerializationError, StepResult

Observer = Callable[[Continuation, Any], None]

_UNSET: Any = object()  # Means "use the environment's setting".


class StepBudgetExceeded(BounceError):
    """Raised when a computation exceeds its step budget.  The pending computation is kept so it can be resumed."""
    def __init__(self, steps: int, pending: Pending) -> None:
        super(StepBudgetExceeded, self).__init__(f"computation still pending after {steps} steps")
        self.steps = steps
        self.pending = pending


def _check_result(result: object) -> None:
    if not isinstance(result, (Done, Pending)):
        raise TypeError("step code must return Done or Pending, not '{}'".format(type(result).__name__))


def step_once(result: StepResult, *, observer: Optional[Observer] = None) -> StepResult:
    """
    Advances a computation by one step and returns the new step result.  `Done` results are returned unchanged.

    :param observer: if given, called with each continuation and its value right before the continuation is applied.
    """
    _check_result(result)
    while isinstance(result, Pending):
        k, value = result
        if observer is not None:
            observer(k, value)
        result = apply_continuation(k, value)
        _check_result(result)

        if isinstance(result, Pending) and result.is_call:
            break

    return result


class Trampoline(object):
    """
    A computation being driven one step at a time.

    Iterating over a trampoline steps it to completion, yielding every intermediate result.  The current result is
    always an ordinary value (`self.result`), so it may be saved, replayed or abandoned at any point.
    """
    def __init__(self, initial: StepResult, *, observer: Optional[Observer] = None,
                 max_steps: Optional[int] = None) -> None:
        _check_result(initial)
        self.result = initial
        self.steps = 0
        self.observer = observer
        self.max_steps = max_steps

    @property
    def done(self) -> bool:
        return isinstance(self.result, Done)

    def step(self) -> StepResult:
        """Takes one step.  Raises StepBudgetExceeded if the budget is used up and the computation isn't done."""
        if self.done:
            return self.result

        if self.max_steps is not None and self.steps >= self.max_steps:
            assert isinstance(self.result, Pending)
            raise StepBudgetExceeded(self.steps, self.result)

        self.result = step_once(self.result, observer=self.observer)
        self.steps += 1
        return self.result

    def __iter__(self) -> Iterator[StepResult]:
        while not self.done:
            yield self.step()

    def finish(self):
        """Steps the computation to completion and returns its final value."""
        for _ in self:
            pass
        assert isinstance(self.result, Done)
        return self.result.value


def run(initial: StepResult, *, observer: Optional[Observer] = None, max_steps: Optional[int] = _UNSET,
        chk_manager: Optional[CheckpointManager] = None, checkpoint_every: Optional[int] = _UNSET,
        run_id: RunID = MAIN_RUN_ID):
    """
    Runs a computation to completion and returns its final value.

    :param observer: called with each continuation and its value right before the continuation is applied.
    :param max_steps: step budget; None means unbounded.  Defaults to the BOUNCE_MAX_STEPS environment variable.
    :param chk_manager: if given, the pending computation is saved through it every `checkpoint_every` steps.  A
        checkpoint that fails with SerializationError is logged and skipped.
    :param checkpoint_every: defaults to the BOUNCE_CHECKPOINT_EVERY environment variable.
    """
    if max_steps is _UNSET or checkpoint_every is _UNSET:
        step_ctrl = StepControl()
        if max_steps is _UNSET:
            max_steps = step_ctrl.max_steps
        if checkpoint_every is _UNSET:
            checkpoint_every = step_ctrl.checkpoint_every

    trampoline = Trampoline(initial, observer=observer, max_steps=max_steps)
    if chk_manager is None or not checkpoint_every:
        return trampoline.finish()

    for result in trampoline:
        if isinstance(result, Pending) and trampoline.steps % checkpoint_every == 0:
            # A checkpoint that can't be saved doesn't stop the computation; the next one may succeed.
            try:
                checkpoint(chk_manager, result, run_id, StepNo(trampoline.steps))
            except SerializationError as e:
                log(run_id, StepNo(trampoline.steps), f"checkpoint skipped: {e}")

    return trampoline.finish()


def checkpoint(chk_manager: CheckpointManager, pending: Pending, run_id: RunID = MAIN_RUN_ID,
               step: StepNo = INITIAL_STEP) -> CheckpointID:
    """Saves a pending computation and returns the checkpoint ID."""
    with log_at_end(run_id, step, "checkpoint"):
        chk_id = chk_manager.save(pending, run_id, step)
        log(run_id, step, f"checkpoint saved: {chk_id}")
    return chk_id


def resume(chk_manager: CheckpointManager, chk_id: CheckpointID, **kwargs):
    """
    Loads a saved computation and runs it to completion; keyword arguments are passed on to `run`.

    The same checkpoint may be resumed any number of times.  Raises ValueError if there's no checkpoint to resume.
    """
    pending = chk_manager.load(chk_id)
    if pending is None:
        raise ValueError("No checkpoint to resume: {!r}".format(chk_id))

    log(kwargs.get("run_id", MAIN_RUN_ID), INITIAL_STEP, f"resuming from checkpoint: {chk_id}")
    return run(pending, **kwargs)


def select_chk_manager(platform: str, fmt: str = "pickle") -> CheckpointManager:
    """Returns a checkpoint manager corresponding to the platform.  Raises ValueError if platform is not recognized."""
    # Import locally so that the irrelevant checkpoint manager classes don't need to be importable.
    if platform == "local":
        from .chk_manager import LocalCheckpointManager
        return LocalCheckpointManager(Path(os.environ["CHECKPOINT_DIR"]), fmt=fmt)
    elif platform == "aws":
        from .chk_manager import S3CheckpointManager
        return S3CheckpointManager(bucket_name=os.environ["CHECKPOINT_BUCKET"], fmt=fmt)

    raise ValueError("No checkpoint manager for platform: {}".format(platform))
