# src/stepci/dsl.py
from __future__ import annotations

from dataclasses import replace
from typing import Dict, List, Optional

from .model import Job, Step
from .registry import JobRegistry


# ---------------------------------------------------------------------
# Step helper
# ---------------------------------------------------------------------

def sh(cmd: str, name: str | None = None, *, always_succeed: bool = False, cwd: str | None = None) -> Step:
    """Create a command step."""
    return Step(run=cmd, name=name or "", always_succeed=always_succeed, cwd=cwd)


# ---------------------------------------------------------------------
# Job helpers
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step | str,  # allow: job("x", sh(...), "make test")
    steps_list: Optional[List[Step]] = None,
    env: Optional[Dict[str, str]] = None,
    reason: Optional[str] = None,
    cwd: str | None = None,  # default cwd applied to steps missing cwd
) -> Job:
    steps_final: List[Step] = []
    if steps_list:
        steps_final.extend(steps_list)
    steps_final.extend(s if isinstance(s, Step) else sh(s) for s in steps)

    if cwd is not None:
        steps_final = [s if s.cwd is not None else replace(s, cwd=cwd) for s in steps_final]

    return Job(name=name, steps=tuple(steps_final), env=env or {}, reason=reason)


def retired(name: str, reason: str | None = None) -> Job:
    """A job kept for its name only; never executed."""
    return Job(name=name, reason=reason)


# ---------------------------------------------------------------------
# Workflow helper
# ---------------------------------------------------------------------

def wf(*jobs: Job, env: Optional[Dict[str, str]] = None) -> JobRegistry:
    """
    Build a registry in code instead of YAML.

        from stepci import wf, job, sh, retired

        registry = wf(
            job("build", sh("make"), sh("make test")),
            retired("mac-dev", reason="Moved to Taskcluster"),
            env={"RUST_BACKTRACE": "1"},
        )
    """
    return JobRegistry(jobs, defaults=env)


workflow = wf
