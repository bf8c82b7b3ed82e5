from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

# Directory under the working directory that holds project-local modules.
LOCAL_SOURCE_DIR = "src"


def _spindle_source_root() -> Path:
    """Return the directory containing the spindle package source."""
    import spindle as _pkg

    return Path(_pkg.__file__).resolve().parent.parent


@dataclass(frozen=True)
class RuntimeEnvironment:
    """Where commands look for user modules and how much traceback they keep.

    Built once per invocation and handed to the command that runs. Nothing
    here touches ``sys.path`` or other process-wide state; commands apply it
    to the child processes they start.
    """

    cwd: Path
    search_path: tuple[Path, ...]
    traceback_limit: int | None = None  # None means unbounded

    @classmethod
    def detect(cls, cwd: Path | None = None) -> RuntimeEnvironment:
        cwd = (cwd or Path.cwd()).resolve()
        return cls(
            cwd=cwd,
            search_path=(cwd, cwd / LOCAL_SOURCE_DIR),
            traceback_limit=None,
        )

    def child_env(self, base: Mapping[str, str] | None = None) -> dict[str, str]:
        """Return a copy of ``base`` with the search path prefixed to PYTHONPATH."""
        env = dict(os.environ if base is None else base)
        entries = [str(p) for p in self.search_path]
        entries.append(str(_spindle_source_root()))
        existing = env.get("PYTHONPATH", "")
        if existing:
            entries.extend(existing.split(os.pathsep))

        seen: set[str] = set()
        unique = []
        for entry in entries:
            if entry and entry not in seen:
                seen.add(entry)
                unique.append(entry)
        env["PYTHONPATH"] = os.pathsep.join(unique)
        return env

    def pytest_args(self) -> list[str]:
        if self.traceback_limit is None:
            return ["--tb=long"]
        return []
