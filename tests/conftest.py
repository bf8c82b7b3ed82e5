from __future__ import annotations

import argparse
import asyncio
from typing import Any

import pytest

from spindle._environment import RuntimeEnvironment
from spindle._schema import Outcome, TestFinished
from spindle.commands import Command, InitCommand, RunCommand

pytest_plugins = ["pytester"]

# Deterministic epoch timestamps for result fixtures.
FIXED_START = 1735689600.0  # 2025-01-01T00:00:00 UTC
FIXED_STOP = 1735689600.005  # 5ms later


@pytest.fixture()
def sample_results() -> list[TestFinished]:
    return [
        TestFinished(
            nodeid="tests/test_a.py::test_ok",
            outcome=Outcome.PASSED,
            when="call",
            duration=0.005,
            start=FIXED_START,
            stop=FIXED_STOP,
        ),
        TestFinished(
            nodeid="tests/test_a.py::test_fail",
            outcome=Outcome.FAILED,
            when="call",
            duration=0.123,
            start=FIXED_START,
            stop=FIXED_START + 0.123,
            longrepr="assert 1 == 2",
        ),
        TestFinished(
            nodeid="tests/test_a.py::test_skip",
            outcome=Outcome.SKIPPED,
            when="setup",
            duration=0.0,
            start=FIXED_START,
            stop=FIXED_START,
        ),
    ]


class FakeCommand(Command):
    """Records each execute() call; declares the real command's flags.

    ``result`` is returned, or ``error`` raised. With ``gated=True`` execute
    waits until release() is called; construct it inside a running loop.
    """

    def __init__(
        self,
        real: Command,
        *,
        result: Any = None,
        error: BaseException | None = None,
        gated: bool = False,
    ) -> None:
        self.real = real
        self.name = real.name
        self.describe = real.describe
        self.result = result
        self.error = error
        self.calls: list[argparse.Namespace] = []
        self.envs: list[RuntimeEnvironment] = []
        self.started = asyncio.Event() if gated else None
        self.gate = asyncio.Event() if gated else None

    def register_flags(self, parser: argparse.ArgumentParser) -> None:
        self.real.register_flags(parser)

    def validate(self, args: argparse.Namespace) -> None:
        self.real.validate(args)

    def release(self, result: Any) -> None:
        assert self.gate is not None
        self.result = result
        self.gate.set()

    async def execute(self, args: argparse.Namespace, env: RuntimeEnvironment) -> Any:
        self.calls.append(args)
        self.envs.append(env)
        if self.started is not None:
            self.started.set()
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.result


def fake_commands(**run_kwargs: Any) -> tuple[FakeCommand, FakeCommand]:
    return FakeCommand(RunCommand(), **run_kwargs), FakeCommand(InitCommand(), result="initialized")
