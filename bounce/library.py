"""
Example CPS functions, each next to the direct recursive function it is equivalent to.

Every continuation here is a named `Continuation` subclass (never a closure), so any computation built from these
functions can be checkpointed and resumed.  The list functions accept any sliceable sequence; a `range` slices in
constant time, which makes it handy for very deep inputs.
"""
import json
import operator
from typing import Callable, Dict, List, NamedTuple, Sequence

from .combinators import sequence
from .continuation import Continuation
from .protocol import cps, give


class Multiply(Continuation):
    """Multiplies the value by `n`, then continues with `k`."""
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        n, k = data
        return give(k, n * value)


class AddTo(Continuation):
    """Adds `c` to the value, then continues with `k`."""
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        c, k = data
        return give(k, c + value)


class AckermannOuter(Continuation):
    """Makes the outer call A(m - 1, value) once the inner call A(m, n - 1) has produced `value`."""
    __slots__ = ()

    @staticmethod
    def run(value, *data):
        m, k = data
        return ackermann_cps(m - 1, value, k)


@cps
def fact_cps(n, k):
    if n <= 1:
        return give(k, 1)
    return fact_cps(n - 1, Multiply(n, k))


def fact_ref(n):
    if n <= 1:
        return 1
    return n * fact_ref(n - 1)


@cps
def length_cps(lst, k):
    if not lst:
        return give(k, 0)
    return length_cps(lst[1:], AddTo(1, k))


def length_ref(lst):
    if not lst:
        return 0
    return 1 + length_ref(lst[1:])


@cps
def sum_cps(lst, k):
    if not lst:
        return give(k, 0)
    return sum_cps(lst[1:], AddTo(lst[0], k))


def sum_ref(lst):
    if not lst:
        return 0
    return lst[0] + sum_ref(lst[1:])


@cps
def member_cps(x, lst, k):
    # A tail call: the caller's continuation is passed through unchanged.
    if not lst:
        return give(k, False)
    elif lst[0] == x:
        return give(k, True)
    return member_cps(x, lst[1:], k)


def member_ref(x, lst):
    if not lst:
        return False
    elif lst[0] == x:
        return True
    return member_ref(x, lst[1:])


@cps
def fib_cps(n, k):
    """fib(1) = fib(2) = 1; fib(n) = 0 for n < 1."""
    if n < 1:
        return give(k, 0)
    elif n <= 2:
        return give(k, 1)
    return sequence([(fib_cps, (n - 1,)), (fib_cps, (n - 2,))], operator.add, k)


def fib_ref(n):
    if n < 1:
        return 0
    elif n <= 2:
        return 1
    return fib_ref(n - 1) + fib_ref(n - 2)


@cps
def count_leaves_cps(tree, k):
    """Counts the non-list leaves of a nested list."""
    if not isinstance(tree, list):
        return give(k, 1)
    elif not tree:
        return give(k, 0)
    return sequence([(count_leaves_cps, (tree[0],)), (count_leaves_cps, (tree[1:],))], operator.add, k)


def count_leaves_ref(tree):
    if not isinstance(tree, list):
        return 1
    elif not tree:
        return 0
    return count_leaves_ref(tree[0]) + count_leaves_ref(tree[1:])


@cps
def ackermann_cps(m, n, k):
    if m == 0:
        return give(k, n + 1)
    elif n == 0:
        return ackermann_cps(m - 1, 1, k)
    return ackermann_cps(m, n - 1, AckermannOuter(m, k))


def ackermann_ref(m, n):
    if m == 0:
        return n + 1
    elif n == 0:
        return ackermann_ref(m - 1, 1)
    return ackermann_ref(m - 1, ackermann_ref(m, n - 1))


@cps
def even_cps(n, k):
    if n == 0:
        return give(k, True)
    return odd_cps(n - 1, k)


@cps
def odd_cps(n, k):
    if n == 0:
        return give(k, False)
    return even_cps(n - 1, k)


def even_ref(n):
    if n == 0:
        return True
    return odd_ref(n - 1)


def odd_ref(n):
    if n == 0:
        return False
    return even_ref(n - 1)


# Argument parsers for the command line: each turns a list of strings into the function's arguments.
def _one_int(argv: List[str]) -> tuple:
    if len(argv) != 1:
        raise ValueError("expected one integer argument")
    return (int(argv[0]),)


def _two_ints(argv: List[str]) -> tuple:
    if len(argv) != 2:
        raise ValueError("expected two integer arguments")
    return int(argv[0]), int(argv[1])


def _int_list(argv: List[str]) -> tuple:
    return ([int(a) for a in argv],)


def _str_list(argv: List[str]) -> tuple:
    return (list(argv),)


def _member_args(argv: List[str]) -> tuple:
    if not argv:
        raise ValueError("expected an item to look for")
    return argv[0], list(argv[1:])


def _json_tree(argv: List[str]) -> tuple:
    if len(argv) != 1:
        raise ValueError("expected one JSON argument")
    return (json.loads(argv[0]),)


class ExampleFunction(NamedTuple):
    cps: Callable
    ref: Callable
    parse_args: Callable[[List[str]], Sequence]


FUNCTIONS: Dict[str, ExampleFunction] = {
    "fact": ExampleFunction(fact_cps, fact_ref, _one_int),
    "length": ExampleFunction(length_cps, length_ref, _str_list),
    "sum": ExampleFunction(sum_cps, sum_ref, _int_list),
    "member": ExampleFunction(member_cps, member_ref, _member_args),
    "fib": ExampleFunction(fib_cps, fib_ref, _one_int),
    "count_leaves": ExampleFunction(count_leaves_cps, count_leaves_ref, _json_tree),
    "ackermann": ExampleFunction(ackermann_cps, ackermann_ref, _two_ints),
    "even": ExampleFunction(even_cps, even_ref, _one_int),
    "odd": ExampleFunction(odd_cps, odd_ref, _one_int),
}
