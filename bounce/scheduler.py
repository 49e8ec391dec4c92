"""Interleaves independent computations one step at a time."""
from typing import Iterable, List, Optional

from .run import Observer, Trampoline
from .protocol import StepResult


class Scheduler(object):
    """
    A round-robin scheduler for CPS computations.

    There's no preemption: each tick advances every unfinished computation by exactly one step, in the order they
    were spawned.  A computation can be dropped at any time by simply not ticking it any more; nothing needs cleanup.
    """
    def __init__(self, *, observer: Optional[Observer] = None, max_steps: Optional[int] = None) -> None:
        self.observer = observer
        self.max_steps = max_steps
        self.tasks: List[Trampoline] = []

    def spawn(self, initial: StepResult) -> int:
        """Adds a computation; returns its task index."""
        self.tasks.append(Trampoline(initial, observer=self.observer, max_steps=self.max_steps))
        return len(self.tasks) - 1

    @property
    def done(self) -> bool:
        return all(task.done for task in self.tasks)

    def tick(self) -> int:
        """Advances every unfinished computation by one step.  Returns the number still unfinished."""
        for task in self.tasks:
            if not task.done:
                task.step()
        return sum(1 for task in self.tasks if not task.done)

    def run_all(self) -> list:
        """Ticks until every computation is done; returns the final values in spawn order."""
        while not self.done:
            self.tick()
        return [task.finish() for task in self.tasks]


def interleave(results: Iterable[StepResult], *, observer: Optional[Observer] = None) -> list:
    """Runs several computations in lockstep; returns their final values in input order."""
    scheduler = Scheduler(observer=observer)
    for result in results:
        scheduler.spawn(result)
    return scheduler.run_all()
