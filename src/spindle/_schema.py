from __future__ import annotations

import logging
from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)

CRASH_REPR = "Test crashed (no result received)"


class Outcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    ERROR = "error"
    XFAILED = "xfailed"
    XPASSED = "xpassed"


class TestStarted(BaseModel):
    __test__ = False  # prevent pytest collection

    type: Literal["test_started"] = "test_started"
    nodeid: str
    start: float
    location: tuple[str, int | None, str] | None = None

    def crashed(self) -> TestFinished:
        """The failure recorded for a test whose process died before it finished."""
        return TestFinished(
            nodeid=self.nodeid,
            outcome=Outcome.FAILED,
            when="call",
            duration=0.0,
            start=self.start,
            stop=self.start,
            location=self.location,
            longrepr=CRASH_REPR,
        )


class TestFinished(BaseModel):
    __test__ = False  # prevent pytest collection

    type: Literal["test_finished"] = "test_finished"
    nodeid: str
    outcome: Outcome
    when: str
    duration: float
    start: float
    stop: float
    location: tuple[str, int | None, str] | None = None
    longrepr: str | None = None
    wasxfail: str | None = None


TestEvent = Annotated[Union[TestStarted, TestFinished], Field(discriminator="type")]
_event_adapter: TypeAdapter[TestEvent] = TypeAdapter(TestEvent)


def load_results(path: Path) -> list[TestFinished]:
    """Read a results file written by the runner into finished results.

    Malformed or truncated lines are skipped. A test that started but never
    finished is reported as crashed, after every result that did arrive.
    """
    results: list[TestFinished] = []
    pending: dict[str, TestStarted] = {}
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return results

    for lineno, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            event = _event_adapter.validate_json(line)
        except ValueError as exc:
            logger.warning("Skipping malformed line %d of %s: %s", lineno, path, exc)
            continue
        if isinstance(event, TestStarted):
            pending[event.nodeid] = event
        else:
            pending.pop(event.nodeid, None)
            results.append(event)

    results.extend(started.crashed() for started in pending.values())
    return results


class RunSummary(BaseModel):
    """What the ``run`` command resolves with."""

    exit_code: int
    counts: dict[Outcome, int] = Field(default_factory=dict)
    duration: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @classmethod
    def from_results(cls, results: list[TestFinished], exit_code: int) -> RunSummary:
        counts: dict[Outcome, int] = {}
        for r in results:
            counts[r.outcome] = counts.get(r.outcome, 0) + 1
        return cls(
            exit_code=exit_code,
            counts=counts,
            duration=round(sum(r.duration for r in results), 6),
        )


class InitResult(BaseModel):
    """What the ``init`` command resolves with."""

    target: Path
    created: list[Path] = Field(default_factory=list)
    skipped: list[Path] = Field(default_factory=list)
