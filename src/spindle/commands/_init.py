from __future__ import annotations

import argparse
import asyncio
import logging
from importlib.resources import files
from pathlib import Path

from spindle._console import print_init
from spindle._environment import RuntimeEnvironment
from spindle._schema import InitResult
from spindle.commands._base import Command

logger = logging.getLogger(__name__)

# template name -> file name written into the target directory
TEMPLATES: dict[str, str] = {
    "test_example.py.tmpl": "test_example.py",
    "conftest.py.tmpl": "conftest.py",
    "spindlerc.toml.tmpl": ".spindlerc.toml",
}


def scaffold(target: Path) -> InitResult:
    """Copy the starter templates into ``target``; existing files are kept."""
    if target.exists() and not target.is_dir():
        raise NotADirectoryError(f"{target} exists and is not a directory")
    target.mkdir(parents=True, exist_ok=True)

    result = InitResult(target=target)
    source = files("spindle") / "templates"
    for template, name in TEMPLATES.items():
        dest = target / name
        if dest.exists():
            logger.debug("not overwriting %s", dest)
            result.skipped.append(dest)
            continue
        dest.write_text(source.joinpath(template).read_text(encoding="utf-8"), encoding="utf-8")
        result.created.append(dest)
    return result


class InitCommand(Command):
    name = "init"
    describe = "Create a starter test suite in <path>"

    def register_flags(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("path", help="Path to the directory to initialize")

    async def execute(self, args: argparse.Namespace, env: RuntimeEnvironment) -> InitResult:
        result = await asyncio.to_thread(scaffold, env.cwd / args.path)
        print_init(result)
        return result
