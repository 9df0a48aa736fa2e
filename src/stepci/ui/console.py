"""Console output formatting utilities for stepci."""

from __future__ import annotations

import sys
from typing import Iterable, Mapping, Optional

from stepci import settings
from stepci.model import Job, JobResult, JobStatus, Step, StepResult
from stepci.runner import hint_for


class Console:
    """Centralized console output formatting.

    Also acts as the executor's reporter, so job/step progress is printed
    as it happens.
    """

    def __init__(self, debug: bool = False, output_tail: int | None = None):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
            output_tail: Characters of captured output shown for a failed step
        """
        self.debug = debug
        self.output_tail = settings.OUTPUT_TAIL if output_tail is None else output_tail

    def print_header(self, title: str) -> None:
        """Print a section header."""
        print(f"\n{title}")
        print("-" * len(title))

    def print_run_started(self, manifest: str, job_count: int) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Manifest: {manifest}")
        print(f"Jobs: {job_count}")
        print()

    # ---- reporter protocol ----

    def job_state(self, job: Job, status: JobStatus) -> None:
        if status is JobStatus.RUNNING:
            print(f"\nJOB STARTED: {job.name}")
        elif status is JobStatus.PENDING:
            self.print_debug(f"{job.name}: pending")

    def step_started(self, job: Job, step: Step, index: int) -> None:
        print(f"[{job.name}] STEP {index + 1}/{len(job.steps)}: {step.name}")

    def step_finished(self, job: Job, result: StepResult, index: int) -> None:
        if result.ok:
            self.print_debug(f"[{job.name}] step {index + 1} ok ({result.duration:.1f}s)")
        elif result.ignored:
            print(f"[{job.name}] STEP FAILED (ignored, always_succeed): {result.step.name}")

    def job_finished(self, result: JobResult) -> None:
        if result.status is JobStatus.SKIPPED:
            print(f"\nJOB SKIPPED: {result.job} (retired)")
        elif result.status is JobStatus.SUCCESS:
            print(f"[{result.job}] STATUS: success ({result.duration:.1f}s)")
        else:
            self.print_job_failure(result)

    # ---- failures ----

    def print_job_failure(self, result: JobResult) -> None:
        """Print which step failed and the tail of its output."""
        print(f"JOB FAILED: {result.job}")
        if result.error is not None:
            print(f"Error: {result.error}")
            return
        failed = result.failed_step
        if failed is None:
            return
        print(f"Step: {failed.step.name}")
        if failed.launch_failed:
            print(f"Error: {failed.error}")
            hint = hint_for(failed.step.run)
            if hint:
                print(f"Hint: {hint}")
        else:
            print(f"Exit code: {failed.exit_code}")
        output = failed.output
        if output:
            if not self.debug and len(output) > self.output_tail:
                output = "..." + output[-self.output_tail:]
            print("Output:")
            print(output.rstrip("\n"))

    def print_results(self, results: Iterable[JobResult]) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for result in results:
            line = f"  {result.job}: {result.status.value.upper()}"
            failed = result.failed_step
            if failed is not None:
                line += f" (step: {failed.step.name})"
            print(line)

    def print_jobs(self, jobs: Iterable[Job]) -> None:
        """Print job names with their active/retired status."""
        for j in jobs:
            if j.retired:
                note = f" ({j.reason})" if j.reason else ""
                print(f"  {j.name}: retired{note}")
            else:
                print(f"  {j.name}: active ({len(j.steps)} step(s))")

    def print_job_detail(self, job: Job, env: Mapping[str, str]) -> None:
        """Print a job's steps and its environment overrides."""
        self.print_header(job.name)
        if job.retired:
            print("retired" + (f": {job.reason}" if job.reason else ""))
            return
        for index, step in enumerate(job.steps, 1):
            flag = "  [always_succeed]" if step.always_succeed else ""
            where = f"  (cwd: {step.cwd})" if step.cwd else ""
            print(f"  {index}. {step.run}{flag}{where}")
        if env:
            print("Environment:")
            for key, value in env.items():
                print(f"  {key}={value}")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exc()
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
