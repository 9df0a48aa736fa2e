from __future__ import annotations

import os
import shlex
import sys
from pathlib import Path
from typing import Dict, List, Mapping, Tuple

import pytest

from stepci.errors import LaunchError
from stepci.model import Step, StepResult


def py(code: str) -> str:
    """A manifest command that runs `code` with the current interpreter."""
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


class SpyRunner:
    """StepRunner double: records every call, never spawns anything."""

    def __init__(self, exit_codes: Dict[str, int] | None = None, unlaunchable: set[str] | None = None):
        self.exit_codes = exit_codes or {}
        self.unlaunchable = unlaunchable or set()
        self.calls: List[Tuple[str, Dict[str, str], Path]] = []

    def run(self, command, environment: Mapping[str, str], working_directory=".") -> StepResult:
        step = command if isinstance(command, Step) else Step(run=command)
        self.calls.append((step.run, dict(environment), Path(working_directory)))
        if step.run in self.unlaunchable:
            raise LaunchError(cmd=step.run, reason="command not found: nope")
        code = self.exit_codes.get(step.run, 0)
        return StepResult(step=step, exit_code=code, output=f"ran {step.run}\n")

    @property
    def commands(self) -> List[str]:
        return [c[0] for c in self.calls]


@pytest.fixture
def spy() -> SpyRunner:
    return SpyRunner()


@pytest.fixture
def host_env() -> Dict[str, str]:
    return dict(os.environ)
