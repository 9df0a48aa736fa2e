# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import CIError

# Process-wide defaults shared read-only by every job.
GlobalDefaults = Mapping[str, str]


@dataclass(frozen=True)
class Step:
    """A single command (step) inside a CI job."""
    run: str
    name: str = ""
    always_succeed: bool = False
    cwd: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            object.__setattr__(self, "name", self.run)


@dataclass(frozen=True)
class Job:
    """
    A CI job: an environment overlay plus an ordered tuple of steps.

    A job with no steps is retired: it keeps its name in the registry
    but is never executed.
    """
    name: str
    steps: Tuple[Step, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    reason: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @property
    def retired(self) -> bool:
        return not self.steps


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.SKIPPED)


@dataclass(frozen=True)
class StepResult:
    """
    Outcome of one step.

    exit_code is None when the process never started (LaunchError).
    """
    step: Step
    exit_code: int | None
    output: str = ""
    duration: float = 0.0
    error: CIError | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == 0 and self.error is None

    @property
    def launch_failed(self) -> bool:
        return self.exit_code is None

    @property
    def ignored(self) -> bool:
        """Failed, but flagged always-succeed so the job carries on."""
        return not self.ok and self.step.always_succeed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.step.name,
            "run": self.step.run,
            "exit_code": self.exit_code,
            "ok": self.ok,
            "always_succeed": self.step.always_succeed,
            "duration": round(self.duration, 3),
            "error": str(self.error) if self.error is not None else None,
            "output": self.output,
        }


@dataclass(frozen=True)
class JobResult:
    job: str
    status: JobStatus
    steps: Tuple[StepResult, ...] = ()
    error: CIError | None = None
    duration: float = 0.0

    def __post_init__(self) -> None:
        if not self.status.is_terminal:
            raise ValueError(f"JobResult for {self.job!r} needs a terminal status, got {self.status.value}")
        object.__setattr__(self, "steps", tuple(self.steps))

    @property
    def failed_step(self) -> StepResult | None:
        """The step that stopped the job, if any."""
        for result in self.steps:
            if not result.ok and not result.step.always_succeed:
                return result
        return None

    @property
    def ok(self) -> bool:
        return self.status is not JobStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "status": self.status.value,
            "duration": round(self.duration, 3),
            "error": str(self.error) if self.error is not None else None,
            "steps": [r.to_dict() for r in self.steps],
        }
