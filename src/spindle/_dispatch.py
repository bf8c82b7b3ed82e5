"""Turn an argument vector into exactly one settled command invocation.

``dispatch()`` builds a fresh parser per call, registers every command
behind an adapter that settles the call's single ``Completion``, and routes
every parse or validation failure through one failure handler. Errors raised
by a command's ``execute`` bypass that handler and propagate unchanged.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Iterable
from importlib.metadata import PackageNotFoundError, metadata
from pathlib import Path
from typing import IO, Any

from rich.console import Console

from spindle import __version__
from spindle._console import error_console, output_console, print_error
from spindle._environment import RuntimeEnvironment
from spindle._options import NormalizedOptions, load_options
from spindle._parser import (
    ParseFailure,
    Parsed,
    SpindleArgumentParser,
    check,
    formatter,
    help_width,
    parse,
)
from spindle.commands import COMMANDS, DEFAULT_COMMAND, Command

logger = logging.getLogger(__name__)

PROG = "spindle"
GLOBAL_FLAGS = frozenset({"-h", "--help", "-V", "--version"})

# Project-URL label -> label shown in the help epilog
_EPILOG_LABELS = {"Issues": "Issues", "Source": "Source", "Homepage": "Docs"}


def _project_urls() -> dict[str, str]:
    """Return {label: url} from the installed distribution's Project-URL entries."""
    try:
        meta = metadata(PROG)
    except PackageNotFoundError:
        return {}
    urls: dict[str, str] = {}
    for entry in meta.get_all("Project-URL") or []:
        label, _, url = entry.partition(",")
        urls[label.strip()] = url.strip()
    return urls


def _epilog(urls: dict[str, str]) -> str:
    lines = [f"{PROG} Resources"]
    width = max(len(label) for label in _EPILOG_LABELS.values())
    for key, label in _EPILOG_LABELS.items():
        if key in urls:
            lines.append(f"  {label:>{width}}: {urls[key]}")
    return "\n".join(lines)


class Completion:
    """The single settle-once result of one dispatch() call.

    The first resolve() or reject() wins; later attempts are ignored.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

    @property
    def settled(self) -> bool:
        return self._future.done()

    def resolve(self, value: Any) -> bool:
        if self._future.done():
            logger.debug("ignoring resolve(%r) of a settled invocation", value)
            return False
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self._future.done():
            logger.debug("ignoring reject(%r) of a settled invocation", error)
            return False
        self._future.set_exception(error)
        return True

    def __await__(self):
        return self._future.__await__()


class _Invocation:
    """Per-call state: the completion signal, output consoles and runtime env."""

    def __init__(
        self,
        completion: Completion,
        env: RuntimeEnvironment,
        out: Console,
        err: Console,
    ) -> None:
        self.completion = completion
        self.env = env
        self.out = out
        self.err = err

    def settling(self, command: Command):
        """Wrap ``command.execute`` so its outcome settles this invocation."""

        async def execute(args: argparse.Namespace) -> None:
            try:
                value = await command.execute(args, self.env)
            except Exception as exc:
                logger.debug("command %r failed: %r", command.name, exc)
                self.completion.reject(exc)
            else:
                self.completion.resolve(value)

        return execute

    def fail(self, failure: ParseFailure) -> None:
        """Show help, print one error line, reject with the usage error."""
        logger.debug("usage failure: %s", failure.error.message)
        self.emit(failure.parser.format_help())
        print_error(self.err, failure.error.message)
        self.completion.reject(failure.error)

    def emit(self, text: str) -> None:
        self.out.print(text, end="")


def with_default_command(tokens: list[str], names: Iterable[str]) -> list[str]:
    """Insert the default command unless argv already names one.

    Leading global flags stay in front so ``-V`` and ``--help`` are still
    handled by the top-level parser.
    """
    names = set(names)
    i = 0
    while i < len(tokens) and tokens[i] in GLOBAL_FLAGS:
        i += 1
    if i < len(tokens) and tokens[i] in names:
        return list(tokens)
    if i == len(tokens) and i > 0:
        return list(tokens)
    return [*tokens[:i], DEFAULT_COMMAND, *tokens[i:]]


def build_parser(
    commands: list[Command],
    options: NormalizedOptions,
    invocation: _Invocation,
    width: int,
) -> SpindleArgumentParser:
    urls = _project_urls()
    parser = SpindleArgumentParser(
        prog=PROG,
        description="Run pytest in a subprocess and report structured results.",
        epilog=_epilog(urls),
        formatter_class=formatter(width),
        add_help=False,
    )
    parser.add_argument("-h", "--help", action="help", help="Show usage information & exit")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=__version__,
        help="Show version number & exit",
    )

    config = parser.add_argument_group("Configuration")
    config.add_argument("--config", metavar="PATH", help="Path to a config file (default: .spindlerc.*)")
    config.add_argument("--no-config", action="store_true", help="Ignore .spindlerc.* files")
    config.add_argument("--package", metavar="PATH", help="Path to pyproject.toml (default: ./pyproject.toml)")
    config.add_argument("--no-package", action="store_true", help="Ignore [tool.spindle] in pyproject.toml")

    subparsers = parser.add_subparsers(title="Commands", dest="command", metavar="<command>")
    seen: set[str] = set()
    for command in commands:
        if command.name in seen:
            raise ValueError(f"Command {command.name!r} registered twice")
        seen.add(command.name)

        sub = parser.add_command_parser(
            subparsers,
            command.name,
            help=command.describe,
            description=command.describe,
            epilog=parser.epilog,
        )
        command.register_flags(sub)

        # Config-file values become defaults, so explicit flags still win.
        dests = {action.dest for action in sub._actions}
        sub.set_defaults(
            **{k: v for k, v in options.values.items() if k in dests},
            _command=command,
            _parser=sub,
            _execute=invocation.settling(command),
        )
    return parser


async def dispatch(
    argv: list[str] | None = None,
    *,
    commands: Iterable[Command] | None = None,
    stdout: IO[str] | None = None,
    stderr: IO[str] | None = None,
    cwd: Path | None = None,
) -> Any:
    """Parse ``argv`` and run the selected command.

    Returns the command's result, or None when ``--help`` or ``--version``
    answered instead. Raises the UsageError for a parse or validation
    failure (after help and an error line are printed), or whatever the
    command's ``execute`` raised, unchanged.
    """
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv)
    logger.debug("entered dispatch with raw args %r", argv)

    env = RuntimeEnvironment.detect(cwd)
    options = load_options(argv, cwd=env.cwd)
    commands = list(COMMANDS.values()) if commands is None else list(commands)

    stdout = stdout if stdout is not None else sys.stdout
    invocation = _Invocation(
        Completion(),
        env,
        output_console(stdout),
        error_console(stderr),
    )
    parser = build_parser(commands, options, invocation, help_width(stdout))

    tokens = with_default_command(options.positionals, (c.name for c in commands))
    result = parse(parser, tokens)
    invocation.emit(result.output)

    if isinstance(result, ParseFailure):
        invocation.fail(result)
    elif isinstance(result, Parsed):
        args = result.namespace
        failure = check(args._parser, args._command.validate, args)
        if failure is not None:
            invocation.fail(failure)
        else:
            logger.debug("dispatching to %r", args.command)
            await args._execute(_public(args))
    else:
        invocation.completion.resolve(None)

    return await invocation.completion


def _public(args: argparse.Namespace) -> argparse.Namespace:
    """Copy of ``args`` without the dispatcher's private bookkeeping."""
    return argparse.Namespace(**{k: v for k, v in vars(args).items() if not k.startswith("_")})


__all__ = ["Completion", "build_parser", "dispatch", "with_default_command"]
