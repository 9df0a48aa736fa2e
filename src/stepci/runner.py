# runner.py
from __future__ import annotations

import logging
import shlex
import subprocess
import time
from pathlib import Path
from typing import Callable, List, Mapping, Optional

from .errors import LaunchError
from .model import Step, StepResult

logger = logging.getLogger(__name__)

TOOL_HINTS = {
    "./mach": "Run from the repository root, or pass --workdir.",
    "python": "Install Python or fix PATH (python).",
    "python3": "Install Python 3 or fix PATH (python3).",
    "bash": "Install bash or fix PATH.",
    "docker": "Install Docker and ensure the daemon is running.",
    "npm": "Install Node.js (includes npm) or fix PATH.",
}


def hint_for(cmd: str) -> str | None:
    """Best-effort suggestion for a command that failed to launch."""
    try:
        argv = shlex.split(cmd)
    except ValueError:
        return "Check the quoting of this command in the manifest."
    if not argv:
        return None
    tool = argv[0]
    if tool == "env":
        # env VAR=x tool ...
        rest = [a for a in argv[1:] if "=" not in a and not a.startswith("-")]
        tool = rest[0] if rest else tool
    return TOOL_HINTS.get(tool)


class StepRunner:
    """
    Runs one external command per call and waits for it.

    stdout and stderr are captured together. When `echo` is given it
    receives every output line as it arrives.
    """

    def __init__(self, echo: Optional[Callable[[str], None]] = None):
        self.echo = echo

    def run(
        self,
        command: str | Step,
        environment: Mapping[str, str],
        working_directory: str | Path = ".",
    ) -> StepResult:
        step = command if isinstance(command, Step) else Step(run=command)
        cwd = Path(working_directory)

        try:
            argv = shlex.split(step.run)
        except ValueError as e:
            raise LaunchError(cmd=step.run, reason=f"cannot parse command: {e}", step=step.name)
        if not argv:
            raise LaunchError(cmd=step.run, reason="empty command", step=step.name)
        if not cwd.is_dir():
            raise LaunchError(cmd=step.run, reason=f"working directory not found: {cwd}", step=step.name)

        logger.debug("spawn %s (cwd=%s)", argv, cwd)
        t0 = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(cwd),
                env=dict(environment),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
            )
        except FileNotFoundError:
            raise LaunchError(cmd=step.run, reason=f"command not found: {argv[0]}", step=step.name)
        except PermissionError:
            raise LaunchError(cmd=step.run, reason=f"permission denied: {argv[0]}", step=step.name)
        except OSError as e:
            raise LaunchError(cmd=step.run, reason=str(e), step=step.name)
        except ValueError as e:
            # Popen refuses NUL bytes anywhere and '=' in env keys
            raise LaunchError(cmd=step.run, reason=f"invalid argument or environment: {e}", step=step.name)

        chunks: List[str] = []
        with proc:
            assert proc.stdout is not None
            for line in proc.stdout:
                chunks.append(line)
                if self.echo is not None:
                    self.echo(line)
            exit_code = proc.wait()

        duration = time.monotonic() - t0
        logger.debug("exit=%s after %.2fs: %s", exit_code, duration, step.run)
        return StepResult(step=step, exit_code=exit_code, output="".join(chunks), duration=duration)
