"""Child-process entry point: python -m spindle._runner <results_path> [pytest args...]

The ``run`` command starts this module. The first argument is the JSONL
results file; everything after it is handed to pytest untouched.
"""
from __future__ import annotations

import sys
import time
from pathlib import Path
from typing import IO

import pytest

from spindle._schema import Outcome, TestFinished, TestStarted


def _outcome(report: pytest.TestReport) -> Outcome | None:
    """The outcome a report settles, or None for a phase that settles nothing."""
    # skip/xfail markers resolve during setup
    if report.when == "call" or (report.when == "setup" and report.skipped):
        if hasattr(report, "wasxfail"):
            return Outcome.XPASSED if report.passed else Outcome.XFAILED
        return Outcome(report.outcome)
    if report.failed:
        return Outcome.ERROR
    return None


class ResultRecorder:
    """Pytest plugin that writes one JSONL event per test start and result.

    Every line is flushed on write, so a child that dies mid-test still
    leaves each completed result in ``stream``.
    """

    def __init__(self, stream: IO[str]) -> None:
        self.stream = stream

    def emit(self, event: TestStarted | TestFinished) -> None:
        self.stream.write(event.model_dump_json() + "\n")
        self.stream.flush()

    def pytest_collectreport(self, report: pytest.CollectReport) -> None:
        # A module that fails to import never produces test reports.
        if not report.failed:
            return
        now = time.time()
        self.emit(
            TestFinished(
                nodeid=report.nodeid,
                outcome=Outcome.ERROR,
                when="collect",
                duration=0.0,
                start=now,
                stop=now,
                longrepr=report.longreprtext or None,
            )
        )

    def pytest_runtest_logstart(self, nodeid: str, location: tuple[str, int | None, str]) -> None:
        self.emit(TestStarted(nodeid=nodeid, start=time.time(), location=location))

    @pytest.hookimpl(tryfirst=True)
    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        outcome = _outcome(report)
        if outcome is None:
            return
        self.emit(
            TestFinished(
                nodeid=report.nodeid,
                outcome=outcome,
                when=report.when,
                duration=round(report.duration, 6),
                start=report.start,
                stop=report.stop,
                location=report.location,
                longrepr=(report.longreprtext or None) if report.failed else None,
                wasxfail=getattr(report, "wasxfail", None),
            )
        )


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    results_path, *pytest_args = argv
    with Path(results_path).open("w", encoding="utf-8") as stream:
        return int(pytest.main(pytest_args, plugins=[ResultRecorder(stream)]))


if __name__ == "__main__":
    sys.exit(main())
