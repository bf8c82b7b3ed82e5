from __future__ import annotations

import json
import sys

import pytest

from spindle._schema import Outcome, TestFinished, load_results


@pytest.fixture()
def recorder_pytester(pytester: pytest.Pytester) -> pytest.Pytester:
    """A pytester that registers the recorder via conftest, pointing at a local results file."""
    results_file = pytester.path / "results.jsonl"
    pytester.makeconftest(
        f"""
from spindle._runner import ResultRecorder

def pytest_configure(config):
    stream = open({str(results_file)!r}, "w", encoding="utf-8")
    config.add_cleanup(stream.close)
    config.pluginmanager.register(ResultRecorder(stream), "spindle_recorder")
"""
    )
    return pytester


def _results(pytester: pytest.Pytester) -> list[TestFinished]:
    return load_results(pytester.path / "results.jsonl")


class TestRecorder:
    def test_passed_test_recorded(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
def test_ok():
    assert True
"""
        )
        recorder_pytester.runpytest().assert_outcomes(passed=1)

        results = _results(recorder_pytester)
        assert len(results) == 1
        r = results[0]
        assert r.outcome == Outcome.PASSED
        assert "test_ok" in r.nodeid
        assert r.when == "call"
        assert r.longrepr is None
        assert r.location is not None

    def test_failed_test_recorded(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
def test_fail():
    assert 1 == 2
"""
        )
        recorder_pytester.runpytest().assert_outcomes(failed=1)

        results = _results(recorder_pytester)
        assert results[0].outcome == Outcome.FAILED
        assert "assert 1 == 2" in results[0].longrepr

    def test_mixed_outcomes(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
import pytest

def test_a():
    pass

@pytest.mark.skip
def test_b():
    pass

@pytest.mark.xfail
def test_c():
    assert False
"""
        )
        recorder_pytester.runpytest().assert_outcomes(passed=1, skipped=1, xfailed=1)

        outcomes = {r.nodeid.split("::")[-1]: r.outcome for r in _results(recorder_pytester)}
        assert outcomes == {
            "test_a": Outcome.PASSED,
            "test_b": Outcome.SKIPPED,
            "test_c": Outcome.XFAILED,
        }

    def test_setup_error_recorded(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
import pytest

@pytest.fixture
def bad_fixture():
    raise RuntimeError("setup boom")

def test_with_bad_fixture(bad_fixture):
    pass
"""
        )
        recorder_pytester.runpytest().assert_outcomes(errors=1)

        results = _results(recorder_pytester)
        assert len(results) == 1
        assert results[0].outcome == Outcome.ERROR
        assert results[0].when == "setup"
        assert "setup boom" in results[0].longrepr

    def test_collection_error_recorded(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(test_broken="import module_that_does_not_exist\n")
        recorder_pytester.runpytest()

        results = _results(recorder_pytester)
        assert len(results) == 1
        assert results[0].outcome == Outcome.ERROR
        assert results[0].when == "collect"
        assert "module_that_does_not_exist" in results[0].longrepr

    def test_crashed_test_recorded(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
import os

def test_before():
    pass

def test_crash():
    os._exit(1)

def test_after():
    pass
"""
        )
        recorder_pytester.runpytest_subprocess()

        by_name = {r.nodeid.split("::")[-1]: r for r in _results(recorder_pytester)}
        assert by_name["test_before"].outcome == Outcome.PASSED
        assert by_name["test_crash"].outcome == Outcome.FAILED
        assert "test_after" not in by_name

    def test_started_and_finished_events(self, recorder_pytester: pytest.Pytester) -> None:
        recorder_pytester.makepyfile(
            """
def test_ok():
    assert True
"""
        )
        recorder_pytester.runpytest()

        lines = (recorder_pytester.path / "results.jsonl").read_text().splitlines()
        events = [json.loads(line) for line in lines]
        assert [e["type"] for e in events] == ["test_started", "test_finished"]
        assert events[0]["nodeid"] == events[1]["nodeid"]


class TestRunnerMain:
    def test_writes_results_and_returns_exit_code(self, pytester: pytest.Pytester) -> None:
        pytester.makepyfile(
            """
def test_ok():
    pass

def test_bad():
    assert [1, 2] == [2]
"""
        )
        results_file = pytester.path / "out.jsonl"
        result = pytester.run(sys.executable, "-m", "spindle._runner", str(results_file), "-p", "no:cacheprovider")
        assert result.ret == 1

        outcomes = {r.nodeid.split("::")[-1]: r.outcome for r in load_results(results_file)}
        assert outcomes == {"test_ok": Outcome.PASSED, "test_bad": Outcome.FAILED}
