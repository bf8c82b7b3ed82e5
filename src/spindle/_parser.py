from __future__ import annotations

import argparse
import functools
import io
import os
import sys
from collections.abc import Callable
from dataclasses import dataclass
from typing import IO, Union

from spindle._errors import ParseError, UsageError, ValidationError
from spindle._options import PARSER_CONFIG, ParserConfig

MAX_WIDTH = 80

# argparse reports missing positionals/options with this prefix.
_REQUIRED_PREFIX = "the following arguments are required"


class _ShortCircuit(Exception):
    """Raised in place of sys.exit() once help or version text is rendered."""


class _Failed(Exception):
    def __init__(self, error: UsageError, parser: argparse.ArgumentParser) -> None:
        super().__init__(error.message)
        self.error = error
        self.parser = parser


@dataclass(frozen=True)
class Parsed:
    namespace: argparse.Namespace
    output: str


@dataclass(frozen=True)
class ShortCircuit:
    output: str


@dataclass(frozen=True)
class ParseFailure:
    error: UsageError
    parser: argparse.ArgumentParser
    output: str


ParseResult = Union[Parsed, ShortCircuit, ParseFailure]


def help_width(stream: IO[str] | None = None) -> int:
    """Terminal width of ``stream`` capped at MAX_WIDTH, or MAX_WIDTH if unknown."""
    stream = stream if stream is not None else sys.stdout
    try:
        columns = os.get_terminal_size(stream.fileno()).columns
    except (AttributeError, OSError, ValueError):
        return MAX_WIDTH
    return min(columns, MAX_WIDTH) if columns > 0 else MAX_WIDTH


def formatter(width: int) -> type[argparse.HelpFormatter]:
    return functools.partial(argparse.RawDescriptionHelpFormatter, width=width)  # type: ignore[return-value]


class SpindleArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that reports instead of exiting.

    Help, usage and version text go to ``sink``, shared by a parser and
    all of its subparsers. ``error()`` and ``exit()`` raise, so ``parse()``
    can hand back a result instead of terminating the process.
    """

    def __init__(
        self,
        *args,
        sink: io.StringIO | None = None,
        config: ParserConfig = PARSER_CONFIG,
        **kwargs,
    ) -> None:
        kwargs.setdefault("allow_abbrev", config.allow_abbrev)
        kwargs.setdefault("prefix_chars", config.prefix_chars)
        super().__init__(*args, **kwargs)
        self.sink = sink if sink is not None else io.StringIO()
        self.config = config
        self._positionals.title = "Positional Arguments"
        self._optionals.title = "Other Options"

    def add_command_parser(
        self, subparsers: argparse._SubParsersAction, name: str, **kwargs
    ) -> SpindleArgumentParser:
        kwargs.setdefault("formatter_class", self.formatter_class)
        return subparsers.add_parser(name, sink=self.sink, config=self.config, **kwargs)

    def _print_message(self, message: str, file: IO[str] | None = None) -> None:
        if message:
            self.sink.write(message)

    def exit(self, status: int = 0, message: str | None = None):  # type: ignore[override]
        if message:
            self._print_message(message)
        raise _ShortCircuit(status)

    def error(self, message: str):  # type: ignore[override]
        if message.startswith(_REQUIRED_PREFIX):
            raise _Failed(ValidationError(message), self)
        raise _Failed(ParseError(message), self)

    def drain(self) -> str:
        output = self.sink.getvalue()
        self.sink.seek(0)
        self.sink.truncate()
        return output


def parse(parser: SpindleArgumentParser, tokens: list[str]) -> ParseResult:
    """Parse ``tokens`` and return what happened rather than exiting."""
    try:
        if parser.config.strict:
            namespace = parser.parse_args(tokens)
        else:
            namespace, extras = parser.parse_known_args(tokens)
            namespace.extras = extras
    except _ShortCircuit:
        return ShortCircuit(output=parser.drain())
    except _Failed as exc:
        return ParseFailure(error=exc.error, parser=exc.parser, output=parser.drain())
    return Parsed(namespace=namespace, output=parser.drain())


def check(
    parser: SpindleArgumentParser,
    validate: Callable[[argparse.Namespace], None],
    namespace: argparse.Namespace,
) -> ParseFailure | None:
    """Run a post-parse ``validate(namespace)`` hook, mapping ValidationError to a failure."""
    try:
        validate(namespace)
    except ValidationError as exc:
        return ParseFailure(error=exc, parser=parser, output=parser.drain())
    return None
