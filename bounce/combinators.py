"""Helpers for writing CPS functions that combine the results of several calls."""
from typing import Callable, Iterable, Sequence, Tuple

from .continuation import Continuation
from .protocol import Pending, call, give

SubCall = Tuple[Callable, Sequence]  # (function, arguments excluding the continuation)


class Map(Continuation):
    """Applies a plain function to the value passed in and hands the result on to `k`."""
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        fn, k = data
        return give(k, fn(value))


class Gather(Continuation):
    """
    Runs dependent calls one after another, collecting their results.

    Receives the result of the previous call, then either starts the next call (with a new `Gather` as its
    continuation) or, once no calls remain, hands `combine(*results)` to `k`.
    """
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        remaining, results, combine, k = data
        return _gather(remaining, results + (value,), combine, k)

    def describe(self) -> str:
        remaining, results, _, _ = self.data
        return "Gather(done={}, remaining={})".format(len(results), len(remaining))


def _gather(remaining: Tuple[SubCall, ...], results: tuple, combine: Callable, k: Continuation) -> Pending:
    if not remaining:
        return give(k, combine(*results))

    (fn, args), rest = remaining[0], remaining[1:]
    return call(fn, *args, Gather(rest, results, combine, k))


def sequence(calls: Iterable[SubCall], combine: Callable, k: Continuation) -> Pending:
    """
    Makes dependent calls in order, then hands `combine(*results)` to `k`.

    Each call runs to completion under the trampoline before the next one starts.  For example, Fibonacci:

        return sequence([(fib_cps, (n - 1,)), (fib_cps, (n - 2,))], operator.add, k)

    :param calls: (function, arguments) pairs; each function is called with its arguments plus a continuation.
    """
    return _gather(tuple((fn, tuple(args)) for fn, args in calls), (), combine, k)


def then(fn: Callable, k: Continuation) -> Map:
    """Returns a continuation that applies `fn` to its value before passing it on to `k`."""
    return Map(fn, k)
