from math import factorial

from bounce import Scheduler, identity, interleave, is_done
from bounce.library import fact_cps, fib_cps, length_cps


def test_interleave():
    results = [fact_cps(6, identity), length_cps([1, 2, 3], identity), fib_cps(7, identity)]
    assert interleave(results) == [factorial(6), 3, 13]


def test_interleave_nothing():
    assert interleave([]) == []


def test_ticks_advance_every_task_by_one_step():
    scheduler = Scheduler()
    a = scheduler.spawn(fact_cps(2, identity))
    b = scheduler.spawn(fact_cps(4, identity))

    assert scheduler.tick() == 2
    assert scheduler.tick() == 1
    assert is_done(scheduler.tasks[a].result)
    assert scheduler.tasks[b].steps == 2

    assert scheduler.tick() == 1
    assert scheduler.tick() == 0
    assert scheduler.done
    assert scheduler.run_all() == [2, 24]


def test_steps_are_interleaved():
    order = []
    scheduler = Scheduler(observer=lambda k, v: order.append(k.describe()) if k.is_call else None)
    scheduler.spawn(fact_cps(2, identity))
    scheduler.spawn(length_cps("ab", identity))
    scheduler.run_all()

    assert order == ["fact_cps(2)", "length_cps('ab')", "fact_cps(1)", "length_cps('b')", "length_cps('')"]


def test_abandoned_task_needs_no_cleanup():
    scheduler = Scheduler()
    scheduler.spawn(fact_cps(1000, identity))
    scheduler.tick()
    assert not scheduler.done
    del scheduler
