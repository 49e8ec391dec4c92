#!/usr/bin/env python3
"""
Runs an example CPS function on the trampoline and prints the result.

Example usage:
    bounce fact 5                                             # Prints 120.
    bounce fib 20 --steps --check                             # Also prints the step count; checks against recursion.
    bounce length a b c d --trace                             # Logs every call and return to stderr.
    bounce fact 500 --checkpoint-dir chk --stop-after 100     # Runs 100 steps, saves, prints the checkpoint ID.
    bounce --resume <chk_id> --checkpoint-dir chk             # Picks up where the saved computation left off.
"""
import argparse
import logging
from pathlib import Path
import sys
from typing import List, Optional

from .chk_manager import FORMATS, LocalCheckpointManager
from .consts import CheckpointID, MAIN_RUN_ID, StepNo
from .global_state.step_ctrl import StepControl
from .library import FUNCTIONS
from .logging import log_trace
from .protocol import Pending, SerializationError, identity
from .run import StepBudgetExceeded, Trampoline, checkpoint

EXIT_MISMATCH = 1
EXIT_BUDGET_EXCEEDED = 2
EXIT_CHECKPOINT_FAILED = 3


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bounce", description="Runs a CPS function on the trampoline.")
    parser.add_argument("function", nargs="?", choices=sorted(FUNCTIONS), help="function to run")
    parser.add_argument("args", nargs="*", help="arguments to the function")
    parser.add_argument("--trace", action="store_true", help="log every continuation applied to stderr")
    parser.add_argument("--steps", action="store_true", help="also print the number of steps taken")
    parser.add_argument("--max-steps", type=int, default=None,
                        help=f"step budget (default: ${StepControl.MAX_STEPS_ENV}, or unbounded)")
    parser.add_argument("--check", action="store_true", help="compare against the direct recursive implementation")
    parser.add_argument("--checkpoint-dir", type=Path, help="directory to save checkpoints to and resume them from")
    parser.add_argument("--format", choices=FORMATS, default="pickle", help="checkpoint format")
    parser.add_argument("--stop-after", type=int, metavar="N", help="save a checkpoint after N steps and stop")
    parser.add_argument("--resume", metavar="CHK_ID", help="resume a saved computation")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.WARNING)

    parser = _make_parser()
    args = parser.parse_args(argv)

    if (args.resume or args.stop_after is not None) and args.checkpoint_dir is None:
        parser.error("--resume and --stop-after require --checkpoint-dir")

    chk_manager = None
    if args.checkpoint_dir is not None:
        chk_manager = LocalCheckpointManager(args.checkpoint_dir, fmt=args.format)

    example = None
    fn_args: tuple = ()
    if args.resume:
        try:
            initial = chk_manager.load(CheckpointID(args.resume))
        except (FileNotFoundError, SerializationError) as e:
            parser.error(f"can't resume {args.resume}: {e}")
    else:
        if args.function is None:
            parser.error("a function is required unless resuming")
        example = FUNCTIONS[args.function]
        try:
            fn_args = tuple(example.parse_args(args.args))
        except ValueError as e:
            parser.error(f"{args.function}: {e}")
        initial = example.cps(*fn_args, identity)

    max_steps = args.max_steps if args.max_steps is not None else StepControl().max_steps
    observer = log_trace(MAIN_RUN_ID) if args.trace else None
    trampoline = Trampoline(initial, observer=observer, max_steps=max_steps)

    try:
        if args.stop_after is not None:
            while not trampoline.done and trampoline.steps < args.stop_after:
                trampoline.step()
            if isinstance(trampoline.result, Pending):
                try:
                    print(checkpoint(chk_manager, trampoline.result, MAIN_RUN_ID, StepNo(trampoline.steps)))
                except SerializationError as e:
                    print(f"error: {e}", file=sys.stderr)
                    return EXIT_CHECKPOINT_FAILED
                return 0

        value = trampoline.finish()
    except StepBudgetExceeded as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_BUDGET_EXCEEDED

    print(repr(value))
    if args.steps:
        print(f"steps: {trampoline.steps}")

    if args.check and example is not None:
        try:
            expected = example.ref(*fn_args)
        except RecursionError:
            print("check skipped: the recursive implementation overflowed the stack", file=sys.stderr)
        else:
            if expected != value:
                print(f"MISMATCH -- expected: {expected!r}, actual: {value!r}", file=sys.stderr)
                return EXIT_MISMATCH

    return 0


if __name__ == '__main__':
    sys.exit(main())
