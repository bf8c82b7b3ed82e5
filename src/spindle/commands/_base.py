from __future__ import annotations

import argparse
from abc import ABC, abstractmethod
from typing import Any, ClassVar

from spindle._environment import RuntimeEnvironment


class Command(ABC):
    """A subcommand spindle can dispatch to."""

    name: ClassVar[str]
    describe: ClassVar[str]

    @abstractmethod
    def register_flags(self, parser: argparse.ArgumentParser) -> None:
        """Declare this command's positionals and options on ``parser``."""

    def validate(self, args: argparse.Namespace) -> None:
        """Raise ValidationError if parsed ``args`` cannot be executed."""

    @abstractmethod
    async def execute(self, args: argparse.Namespace, env: RuntimeEnvironment) -> Any:
        """Run the command; the returned value is the invocation's result."""
