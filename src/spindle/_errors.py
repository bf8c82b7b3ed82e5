from __future__ import annotations


class SpindleError(Exception):
    """Base class for errors raised by spindle itself."""


class UsageError(SpindleError):
    """The command line could not be turned into a command invocation."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ParseError(UsageError):
    """Malformed flag syntax, or an unknown option or command."""


class ValidationError(UsageError):
    """Arguments parsed, but a required value is missing or invalid."""


class ConfigError(SpindleError):
    """A config file is missing, unreadable or holds invalid values."""
