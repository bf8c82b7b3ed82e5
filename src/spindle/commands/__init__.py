from __future__ import annotations

from spindle.commands._base import Command
from spindle.commands._init import InitCommand
from spindle.commands._run import RunCommand

DEFAULT_COMMAND = "run"

COMMANDS: dict[str, Command] = {
    "run": RunCommand(),
    "init": InitCommand(),
}

__all__ = ["COMMANDS", "Command", "DEFAULT_COMMAND", "InitCommand", "RunCommand"]
