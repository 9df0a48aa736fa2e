# executor.py
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Protocol

from .env import resolve
from .errors import ConfigError, LaunchError, StepFailure
from .model import Job, JobResult, JobStatus, Step, StepResult
from .runner import StepRunner

logger = logging.getLogger(__name__)


class Reporter(Protocol):
    """Receives job state transitions. ui.console.Console implements this."""

    def job_state(self, job: Job, status: JobStatus) -> None: ...

    def step_started(self, job: Job, step: Step, index: int) -> None: ...

    def step_finished(self, job: Job, result: StepResult, index: int) -> None: ...

    def job_finished(self, result: JobResult) -> None: ...


class JobExecutor:
    """
    Drives one job's steps in declared order with fail-fast semantics.

    Holds no per-job state, so one instance may execute distinct jobs
    from several threads at once.
    """

    def __init__(
        self,
        runner: Optional[StepRunner] = None,
        workdir: str | Path = ".",
        reporter: Optional[Reporter] = None,
    ):
        self.runner = runner or StepRunner()
        self.workdir = Path(workdir)
        self.reporter = reporter

    def _notify(self, method: str, *args) -> None:
        if self.reporter is not None:
            getattr(self.reporter, method)(*args)

    def _finish(self, result: JobResult) -> JobResult:
        self._notify("job_finished", result)
        return result

    def _run_step(self, job: Job, step: Step, env: Mapping[str, str]) -> StepResult:
        cwd = (self.workdir / (step.cwd or ".")).resolve()
        t0 = time.monotonic()
        try:
            result = self.runner.run(step, env, cwd)
        except LaunchError as e:
            e.job = job.name
            e.step = step.name
            logger.error("%s", e)
            return StepResult(step=step, exit_code=None, duration=time.monotonic() - t0, error=e)

        if result.exit_code != 0:
            failure = StepFailure(
                job=job.name,
                step=step.name,
                cmd=step.run,
                exit_code=result.exit_code,
                output=result.output,
            )
            if step.always_succeed:
                logger.warning("%s (always_succeed, continuing)", failure)
            else:
                logger.info("%s", failure)
            return StepResult(
                step=step,
                exit_code=result.exit_code,
                output=result.output,
                duration=result.duration,
                error=failure,
            )
        return result

    def execute(self, job: Job, global_defaults: Optional[Mapping[str, str]] = None) -> JobResult:
        self._notify("job_state", job, JobStatus.PENDING)

        if not job.steps:
            logger.debug("[%s] retired, skipping", job.name)
            return self._finish(JobResult(job=job.name, status=JobStatus.SKIPPED))

        t0 = time.monotonic()
        try:
            env = resolve(global_defaults, job.env)
        except ConfigError as e:
            logger.error("[%s] %s", job.name, e)
            return self._finish(JobResult(job=job.name, status=JobStatus.FAILED, error=e))

        self._notify("job_state", job, JobStatus.RUNNING)
        results: List[StepResult] = []
        status = JobStatus.SUCCESS

        for index, step in enumerate(job.steps):
            self._notify("step_started", job, step, index)
            result = self._run_step(job, step, env)
            results.append(result)
            self._notify("step_finished", job, result, index)

            if not result.ok and not step.always_succeed:
                status = JobStatus.FAILED
                break

        return self._finish(
            JobResult(
                job=job.name,
                status=status,
                steps=tuple(results),
                duration=time.monotonic() - t0,
            )
        )


def execute(
    job: Job,
    global_defaults: Optional[Mapping[str, str]] = None,
    *,
    runner: Optional[StepRunner] = None,
    workdir: str | Path = ".",
    reporter: Optional[Reporter] = None,
) -> JobResult:
    """Execute one job with a throwaway JobExecutor."""
    return JobExecutor(runner=runner, workdir=workdir, reporter=reporter).execute(job, global_defaults)


def run_jobs(
    executor: JobExecutor,
    jobs: Iterable[Job],
    global_defaults: Optional[Mapping[str, str]] = None,
    max_workers: int = 1,
) -> List[JobResult]:
    """
    Run independent jobs, returning results in the order requested.

    A failing job never stops the others; every job gets a JobResult.
    """
    jobs = list(jobs)
    if max_workers <= 1 or len(jobs) <= 1:
        return [executor.execute(j, global_defaults) for j in jobs]

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [pool.submit(executor.execute, j, global_defaults) for j in jobs]
        return [f.result() for f in futures]
