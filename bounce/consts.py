"""Contains constants for the runtime module."""
from typing import NewType

# Stronger typing for integers and strings.
CheckpointID = NewType("CheckpointID", str)
StepNo = NewType("StepNo", int)
RunID = NewType("RunID", int)


MAIN_RUN_ID = RunID(0)
INITIAL_STEP = StepNo(0)
