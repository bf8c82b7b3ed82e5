from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("spindle")
except PackageNotFoundError:
    __version__ = "0.0.0"

from spindle._dispatch import Completion, dispatch
from spindle._environment import RuntimeEnvironment
from spindle._errors import ConfigError, ParseError, SpindleError, UsageError, ValidationError
from spindle._schema import InitResult, RunSummary
from spindle.commands import Command

__all__ = [
    "Command",
    "Completion",
    "ConfigError",
    "InitResult",
    "ParseError",
    "RunSummary",
    "RuntimeEnvironment",
    "SpindleError",
    "UsageError",
    "ValidationError",
    "__version__",
    "dispatch",
]
