import os
import sys
from typing import Optional


class StepControl(object):
    """Contains policy for how long the driver may run and how often it takes a checkpoint."""
    MAX_STEPS_ENV = "BOUNCE_MAX_STEPS"
    CHECKPOINT_EVERY_ENV = "BOUNCE_CHECKPOINT_EVERY"

    def __init__(self) -> None:
        self.max_steps = self._read_int(self.MAX_STEPS_ENV)
        self.checkpoint_every = self._read_int(self.CHECKPOINT_EVERY_ENV)

    @staticmethod
    def _read_int(env: str) -> Optional[int]:
        """Reads a positive integer from the environment; returns None if absent or invalid."""
        value_str = os.environ.get(env)
        if value_str is None:
            return None

        try:
            value = int(value_str)
        except ValueError:
            print(f"Environment {env} not an integer: {value_str}", file=sys.stderr)
            return None

        if value <= 0:
            print(f"Environment {env} not positive: {value_str}", file=sys.stderr)
            return None

        print(f"{env} set to: {value}", file=sys.stderr)
        return value
