"""Executable wrapper: ``python -m spindle`` and the ``spindle`` console script.

This is the only layer that turns an invocation's outcome into an exit code.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys

from rich.console import Console
from rich.logging import RichHandler

from spindle._console import print_error
from spindle._dispatch import dispatch
from spindle._errors import ConfigError, UsageError
from spindle._schema import RunSummary

EXIT_USAGE = 2


def _configure_logging() -> None:
    level = os.environ.get("SPINDLE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def main(argv: list[str] | None = None) -> int:
    _configure_logging()
    err = Console(stderr=True)
    try:
        result = asyncio.run(dispatch(argv))
    except UsageError:
        # Help and the error line were already printed.
        return EXIT_USAGE
    except ConfigError as exc:
        print_error(err, str(exc))
        return 1
    except KeyboardInterrupt:
        return 130
    except Exception:
        err.print_exception()
        return 1

    if isinstance(result, RunSummary):
        return result.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())
