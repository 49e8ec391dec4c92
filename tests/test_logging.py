import re

import pytest

from bounce import identity, run
from bounce.consts import RunID, StepNo
from bounce.library import fact_cps
from bounce.logging import log, log_at_end, log_duration, log_trace


def test_log_format(capsys):
    log(RunID(3), StepNo(7), "hello", timestamp=1.5)
    assert capsys.readouterr().err == "[3, step=7, time=1500000] hello\n"


def test_log_duration(capsys):
    with log_duration(RunID(0), StepNo(1), "work"):
        pass
    lines = capsys.readouterr().err.splitlines()
    assert lines[0].endswith("begin: work")
    assert re.search(r"] end: work \(\d+\.\d ms\)$", lines[1])


def test_log_duration_reports_failure(capsys):
    with pytest.raises(ValueError):
        with log_duration(RunID(0), StepNo(1), "work"):
            raise ValueError("boom")
    lines = capsys.readouterr().err.splitlines()
    assert re.search(r"] failed: work \(\d+\.\d ms\)$", lines[1])


def test_log_at_end(capsys):
    with log_at_end(RunID(2), StepNo(5), "checkpoint"):
        pass
    lines = capsys.readouterr().err.splitlines()
    assert len(lines) == 1
    assert lines[0].startswith("[2, step=5, time=")
    assert "end: checkpoint (" in lines[0]


def test_trace(capsys):
    run(fact_cps(2, identity), observer=log_trace(RunID(0)))
    messages = [re.sub(r"^\[.*?\] ", "", line) for line in capsys.readouterr().err.splitlines()]
    assert messages == [
        "call fact_cps(2)",
        "call fact_cps(1)",
        "return 1 -> Multiply",
        "return 2 -> Identity",
    ]
