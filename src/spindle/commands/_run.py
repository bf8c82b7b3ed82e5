from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
import tempfile
from pathlib import Path

from spindle._console import print_results
from spindle._environment import RuntimeEnvironment
from spindle._errors import ValidationError
from spindle._schema import RunSummary, load_results
from spindle.commands._base import Command

logger = logging.getLogger(__name__)


def build_pytest_args(args: argparse.Namespace, env: RuntimeEnvironment) -> list[str]:
    """Translate parsed ``run`` flags into a pytest command line."""
    pytest_args = list(args.spec)
    if args.bail:
        pytest_args.append("-x")
    if args.grep:
        pytest_args.extend(["-k", args.grep])
    if args.dry_run:
        pytest_args.append("--collect-only")
    if args.full_trace:
        pytest_args.append("--full-trace")
    pytest_args.extend(env.pytest_args())
    pytest_args.extend(args.pytest_arg)
    return pytest_args


class RunCommand(Command):
    name = "run"
    describe = "Run tests with spindle"

    def register_flags(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "spec",
            nargs="*",
            default=["tests"],
            metavar="SPEC",
            help="Test files, directories or node ids (default: tests)",
        )

        rules = parser.add_argument_group("Rules & Behavior")
        rules.add_argument(
            "-b",
            "--bail",
            action="store_true",
            help='Abort ("bail") after first test failure',
        )
        rules.add_argument(
            "--dry-run",
            action="store_true",
            help="Collect tests but do not run them",
        )
        rules.add_argument(
            "--python",
            default=None,
            metavar="PATH",
            help="Python interpreter to run the tests with (default: this one)",
        )

        filters = parser.add_argument_group("Test Filters")
        filters.add_argument(
            "-g",
            "--grep",
            default=None,
            metavar="EXPR",
            help="Only run tests matching this keyword expression",
        )

        reporting = parser.add_argument_group("Reporting & Output")
        reporting.add_argument(
            "--full-trace",
            action="store_true",
            help="Display full stack traces",
        )
        reporting.add_argument(
            "--pytest-arg",
            action="append",
            default=[],
            metavar="ARG",
            help=(
                "Pass ARG through to pytest (repeatable). Attach dash-prefixed "
                "values with =, as in --pytest-arg=-q"
            ),
        )

    def validate(self, args: argparse.Namespace) -> None:
        if args.python and not Path(args.python).is_file():
            raise ValidationError(f"Python interpreter not found: {args.python}")

    async def execute(self, args: argparse.Namespace, env: RuntimeEnvironment) -> RunSummary:
        pytest_args = build_pytest_args(args, env)

        fd, results_path = tempfile.mkstemp(suffix=".jsonl", prefix="spindle_")
        os.close(fd)
        results_file = Path(results_path)

        try:
            python_exe = args.python or sys.executable
            logger.debug("starting %s with pytest args %r", python_exe, pytest_args)
            proc = await asyncio.create_subprocess_exec(
                python_exe,
                "-m",
                "spindle._runner",
                str(results_file),
                *pytest_args,
                cwd=env.cwd,
                env=env.child_env(),
            )
            exit_code = await proc.wait()

            # Read whatever events were written, even on crash.
            resolved = load_results(results_file)
            summary = RunSummary.from_results(resolved, exit_code)
            print_results(summary, resolved)
            return summary
        finally:
            results_file.unlink(missing_ok=True)
