from __future__ import annotations

import copy
import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from spindle._errors import ConfigError

logger = logging.getLogger(__name__)

RC_FILES = (".spindlerc.toml", ".spindlerc.json")
PACKAGE_FILE = "pyproject.toml"

# Built-in values, the lowest layer under config files and CLI flags.
DEFAULTS: dict[str, Any] = {
    "spec": ["tests"],
    "bail": False,
    "grep": None,
    "dry_run": False,
    "full_trace": False,
    "python": None,
    "pytest_arg": [],
}


@dataclass(frozen=True)
class ParserConfig:
    """Behavioral switches applied to every argument parser spindle builds."""

    allow_abbrev: bool = False
    prefix_chars: str = "-"
    strict: bool = True  # unknown options are errors rather than passed through


PARSER_CONFIG = ParserConfig()


class FileConfig(BaseModel):
    """Values accepted from ``.spindlerc.*`` files and ``[tool.spindle]``."""

    model_config = ConfigDict(extra="forbid")

    spec: list[str] | None = None
    bail: bool | None = None
    grep: str | None = None
    dry_run: bool | None = None
    full_trace: bool | None = None
    python: str | None = None
    pytest_arg: list[str] | None = None

    @model_validator(mode="before")
    @classmethod
    def _normalize_keys(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {str(k).replace("-", "_"): v for k, v in data.items()}
        return data

    @field_validator("spec", "pytest_arg", mode="before")
    @classmethod
    def _listify(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [value]
        return value


@dataclass(frozen=True)
class NormalizedOptions:
    """Merged option values plus the tokens left for the argument parser."""

    values: dict[str, Any]
    positionals: list[str] = field(default_factory=list)
    config_path: Path | None = None


def _take_path(argv: list[str], i: int, flag: str) -> tuple[str, int]:
    token = argv[i]
    if token.startswith(flag + "="):
        return token[len(flag) + 1 :], i + 1
    if i + 1 >= len(argv):
        raise ConfigError(f"{flag} requires a path")
    return argv[i + 1], i + 2


def _prescan(argv: list[str]) -> tuple[list[str], dict[str, Any]]:
    """Strip the config-selection flags out of argv."""
    rest: list[str] = []
    found: dict[str, Any] = {"config": None, "package": None, "no_config": False, "no_package": False}
    i = 0
    while i < len(argv):
        token = argv[i]
        if token == "--":
            rest.extend(argv[i:])
            break
        if token == "--config" or token.startswith("--config="):
            found["config"], i = _take_path(argv, i, "--config")
        elif token == "--package" or token.startswith("--package="):
            found["package"], i = _take_path(argv, i, "--package")
        elif token == "--no-config":
            found["no_config"] = True
            i += 1
        elif token == "--no-package":
            found["no_package"] = True
            i += 1
        else:
            rest.append(token)
            i += 1
    return rest, found


def _read_file(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Unable to read config file {str(path)!r}: {exc}") from exc

    try:
        if path.suffix == ".json":
            data = json.loads(text)
        else:
            data = tomllib.loads(text)
    except (json.JSONDecodeError, tomllib.TOMLDecodeError) as exc:
        raise ConfigError(f"Unable to parse config file {str(path)!r}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {str(path)!r} must contain a table of options")
    return data


def _validate(raw: dict[str, Any], source: Path) -> dict[str, Any]:
    try:
        config = FileConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigError(f"Invalid options in {str(source)!r}: {exc}") from exc
    return config.model_dump(exclude_none=True)


def _load_package(cwd: Path, explicit: str | None) -> dict[str, Any]:
    path = cwd / (explicit or PACKAGE_FILE)
    if not path.is_file():
        if explicit:
            raise ConfigError(f"Package file {str(path)!r} not found")
        return {}
    section = _read_file(path).get("tool", {}).get("spindle", {})
    if not section:
        return {}
    logger.debug("loaded [tool.spindle] from %s", path)
    return _validate(section, path)


def _find_rc(cwd: Path, explicit: str | None) -> Path | None:
    if explicit:
        path = cwd / explicit
        if not path.is_file():
            raise ConfigError(f"Config file {str(path)!r} not found")
        return path
    for name in RC_FILES:
        path = cwd / name
        if path.is_file():
            return path
    return None


def load_options(argv: list[str], cwd: Path | None = None) -> NormalizedOptions:
    """Merge defaults, ``[tool.spindle]`` and the rc file, in rising precedence.

    Config-selection flags (``--config``, ``--no-config``, ``--package``,
    ``--no-package``) are consumed here; every other token is returned in
    ``positionals`` for the argument parser.
    """
    cwd = cwd or Path.cwd()
    rest, found = _prescan(list(argv))

    values = copy.deepcopy(DEFAULTS)
    if not found["no_package"]:
        values.update(_load_package(cwd, found["package"]))

    config_path: Path | None = None
    if not found["no_config"]:
        config_path = _find_rc(cwd, found["config"])
        if config_path is not None:
            logger.debug("loaded options from %s", config_path)
            values.update(_validate(_read_file(config_path), config_path))

    return NormalizedOptions(values=values, positionals=rest, config_path=config_path)
