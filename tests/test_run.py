from math import factorial
import sys

import pytest

from bounce import (Call, Done, InvalidContinuation, Pending, StepBudgetExceeded, Trampoline, call, cps, give,
                    identity, is_done, make_continuation, run, step_once)
from bounce import library
from bounce.library import AddTo, fact_cps, fib_cps, length_cps, member_cps


@cps
def forever_cps(n, k):
    return forever_cps(n + 1, k)


def fact_closure(n, k):
    """Factorial written with closures instead of named continuations."""
    if n <= 1:
        return give(k, 1)
    return call(fact_closure, n - 1, make_continuation(lambda v: give(k, n * v)))


def _count_steps(result) -> int:
    steps = 0
    while not is_done(result):
        result = step_once(result)
        steps += 1
    return steps


def _frame_depth() -> int:
    frame, depth = sys._getframe(), 0
    while frame is not None:
        depth += 1
        frame = frame.f_back
    return depth


def test_scenario_a_factorial():
    assert run(fact_cps(5, identity)) == 120


def test_scenario_b_length():
    assert run(length_cps([1, 2, 3, 4], identity)) == 4


def test_scenario_c_fibonacci():
    assert run(fib_cps(6, identity)) == 8


def test_scenario_d_step_once():
    result = length_cps([1, 2, 3, 4], identity)
    for _ in range(4):
        result = step_once(result)
        assert isinstance(result, Pending)
        assert result.is_call

    assert step_once(result) == Done(4)


def test_calling_a_cps_function_does_no_work():
    assert fact_cps(5, identity) == Pending(Call(fact_cps, 5, identity), None)


def test_step_once_on_done_is_noop():
    done = Done(3)
    assert step_once(done) is done


def test_identity_continuation():
    assert run(Pending(identity, "x")) == "x"


def test_closure_continuations():
    assert run(fact_closure(10, identity)) == factorial(10)


@pytest.mark.parametrize("result, steps", [
    (fact_cps(0, identity), 1),
    (fact_cps(1, identity), 1),
    (fact_cps(5, identity), 5),
    (length_cps([], identity), 1),
    (length_cps([1, 2, 3, 4], identity), 5),
    (member_cps(3, [1, 2, 3, 4], identity), 3),
    (member_cps(9, [1, 2], identity), 3),
    (fib_cps(6, identity), 15),
])
def test_step_counts(result, steps):
    assert _count_steps(result) == steps


def _counting(monkeypatch, name):
    """Replaces a reference function in the library with a version that counts calls (recursive ones included)."""
    original = getattr(library, name)
    counter = [0]

    def wrapper(*args):
        counter[0] += 1
        return original(*args)

    monkeypatch.setattr(library, name, wrapper)
    return counter


@pytest.mark.parametrize("name, args", [
    ("fact", (12,)),
    ("length", (list("abcdefg"),)),
    ("sum", ([3, 1, 4, 1, 5],)),
    ("member", ("x", list("abxcd"))),
    ("fib", (10,)),
    ("count_leaves", ([1, [2, [3, 4]], [], 5],)),
    ("ackermann", (2, 2)),
])
def test_steps_match_recursive_calls(monkeypatch, name, args):
    counter = _counting(monkeypatch, f"{name}_ref")
    example = library.FUNCTIONS[name]
    expected = getattr(library, f"{name}_ref")(*args)

    trampoline = Trampoline(example.cps(*args, identity))
    assert trampoline.finish() == expected
    assert trampoline.steps == counter[0]


def test_continuations_run_in_unwinding_order():
    applied = []
    run(length_cps([1, 2], identity), observer=lambda k, v: applied.append((type(k).__name__, v)))
    assert applied == [
        ("Call", None),
        ("Call", None),
        ("Call", None),
        ("AddTo", 0),
        ("AddTo", 1),
        ("Identity", 2),
    ]


def test_observer_sees_step_once():
    seen = []
    step_once(fact_cps(3, identity), observer=lambda k, v: seen.append(k))
    assert seen == [Call(fact_cps, 3, identity)]


def test_trampoline_iteration():
    trampoline = Trampoline(fact_cps(3, identity))
    results = list(trampoline)
    assert len(results) == 3 == trampoline.steps
    assert results[-1] == Done(6)
    assert trampoline.done
    assert trampoline.finish() == 6


def test_step_budget():
    with pytest.raises(StepBudgetExceeded) as exc_info:
        run(fact_cps(10, identity), max_steps=5)

    e = exc_info.value
    assert e.steps == 5
    assert isinstance(e.pending, Pending)
    assert run(e.pending, max_steps=None) == factorial(10)


def test_step_budget_exact_fit():
    assert run(fact_cps(10, identity), max_steps=10) == factorial(10)


def test_step_budget_catches_non_termination():
    with pytest.raises(StepBudgetExceeded) as exc_info:
        run(forever_cps(0, identity), max_steps=100)
    assert exc_info.value.pending == Pending(Call(forever_cps, 100, identity), None)


def test_step_budget_from_environment(monkeypatch):
    monkeypatch.setenv("BOUNCE_MAX_STEPS", "3")
    with pytest.raises(StepBudgetExceeded):
        run(fact_cps(10, identity))
    assert run(fact_cps(10, identity), max_steps=None) == factorial(10)


def test_invalid_continuation_aborts_run():
    with pytest.raises(InvalidContinuation):
        run(Pending(lambda v: Done(v), 1))

    bad = make_continuation(lambda v: Pending("not a continuation", v))
    with pytest.raises(InvalidContinuation):
        run(Pending(bad, 1))


@pytest.mark.parametrize("initial", [42, None, (identity, 1)])
def test_not_a_step_result(initial):
    with pytest.raises(TypeError):
        run(initial)


def test_step_code_returning_garbage():
    with pytest.raises(TypeError, match="int"):
        run(Pending(make_continuation(lambda v: 42), 1))


def test_client_errors_propagate():
    with pytest.raises(ZeroDivisionError):
        run(Pending(make_continuation(lambda v: Done(1 / v)), 0))


def test_pending_can_be_replayed():
    result = fact_cps(8, identity)
    for _ in range(4):
        result = step_once(result)

    assert run(result) == run(result) == factorial(8)


def test_constant_stack_depth():
    def max_depth(result):
        depths = []
        run(result, observer=lambda k, v: depths.append(_frame_depth()))
        return max(depths)

    assert max_depth(length_cps(range(10), identity)) == max_depth(length_cps(range(5000), identity))
    assert max_depth(fib_cps(5, identity)) == max_depth(fib_cps(15, identity))


def test_deep_length(deep_n):
    assert run(length_cps(range(deep_n), identity)) == deep_n
    if deep_n > sys.getrecursionlimit():
        with pytest.raises(RecursionError):
            library.length_ref(range(deep_n))


def test_deep_member(deep_n):
    assert run(member_cps(deep_n - 1, range(deep_n), identity)) is True
    assert run(member_cps(-1, range(deep_n), identity)) is False


def test_deep_mutual_recursion(deep_n):
    assert run(library.even_cps(deep_n, identity)) == (deep_n % 2 == 0)
    assert run(library.odd_cps(deep_n, identity)) == (deep_n % 2 == 1)


def test_deep_factorial():
    n = 5 * sys.getrecursionlimit()
    assert run(fact_cps(n, identity)) == factorial(n)
    with pytest.raises(RecursionError):
        library.fact_ref(n)


def test_deep_sum_with_closures(deep_n):
    def sum_closure(lst, k):
        if not lst:
            return give(k, 0)
        return call(sum_closure, lst[1:], make_continuation(lambda v: give(k, lst[0] + v)))

    assert run(sum_closure(range(deep_n), identity)) == sum(range(deep_n))


def test_add_to_unwinds_in_one_step():
    result = step_once(Pending(AddTo(1, AddTo(2, identity)), 0))
    assert result == Done(3)
