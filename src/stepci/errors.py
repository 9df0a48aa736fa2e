# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


class CIError(Exception):
    """Base class for every error raised by stepci."""


@dataclass
class ManifestError(CIError):
    """
    The manifest could not be turned into a JobRegistry.

    Always fatal: raised before any job runs.
    """
    message: str
    source: str | None = None
    job: str | None = None

    def __str__(self) -> str:
        where = self.source or "<manifest>"
        if self.job:
            where = f"{where}: job '{self.job}'"
        return f"{where}: {self.message}"


@dataclass
class ConfigError(CIError):
    """Bad environment input. Fails the affected job only."""
    message: str
    key: str | None = None

    def __str__(self) -> str:
        if self.key is not None:
            return f"environment key {self.key!r}: {self.message}"
        return self.message


@dataclass
class LaunchError(CIError):
    """The external command could not be spawned at all."""
    cmd: str
    reason: str
    job: str | None = None
    step: str | None = None

    def __str__(self) -> str:
        prefix = f"[{self.job}] " if self.job else ""
        label = f"step '{self.step}' " if self.step else ""
        return f"{prefix}{label}could not launch: {self.cmd} ({self.reason})"


@dataclass
class StepFailure(CIError):
    job: str
    step: str
    cmd: str
    exit_code: int
    output: str = field(default="", repr=False)

    def __str__(self) -> str:
        return f"[{self.job}] step '{self.step}' failed (exit={self.exit_code}): {self.cmd}"


@dataclass
class NotFoundError(CIError):
    name: str
    known: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        return f"Unknown job: {self.name!r}"
