from __future__ import annotations

from pathlib import Path

import pytest

from stepci.dsl import job, sh
from stepci.errors import ConfigError, LaunchError, StepFailure
from stepci.executor import JobExecutor, execute, run_jobs
from stepci.model import Job, JobResult, JobStatus
from stepci.runner import StepRunner

from conftest import SpyRunner, py


def three_steps(always_succeed: bool = False) -> Job:
    return job(
        "linux-rel",
        sh("build"),
        sh("test", always_succeed=always_succeed),
        sh("cleanup"),
    )


def test_retired_job_is_skipped_without_spawning(spy: SpyRunner) -> None:
    result = execute(Job(name="mac-dev"), {"A": "1"}, runner=spy)
    assert result.status is JobStatus.SKIPPED
    assert result.steps == ()
    assert spy.calls == []


@pytest.mark.parametrize("env", [{"A=B": "1"}, {"BAD": "a\0b"}, {"": "x"}])
def test_environment_the_os_would_refuse_fails_the_job(tmp_path: Path, host_env, env) -> None:
    result = execute(job("j", sh(py("pass")), env=env), host_env, runner=StepRunner(), workdir=tmp_path)
    assert result.status is JobStatus.FAILED
    assert isinstance(result.error, ConfigError)
    assert result.steps == ()


def test_run_jobs_survives_a_job_with_a_bad_environment(tmp_path: Path, host_env) -> None:
    jobs = [
        job("bad", sh(py("pass")), env={"A=B": "1"}),
        job("good", sh(py("print('fine')"))),
    ]
    results = run_jobs(JobExecutor(runner=StepRunner(), workdir=tmp_path), jobs, host_env, max_workers=2)
    assert [r.job for r in results] == ["bad", "good"]
    assert [r.status for r in results] == [JobStatus.FAILED, JobStatus.SUCCESS]
    assert "fine" in results[1].steps[0].output


def test_retired_job_skips_environment_resolution(spy: SpyRunner) -> None:
    # Bad defaults would fail resolution; a retired job never gets that far.
    result = execute(Job(name="arm32"), {"BAD": 1}, runner=spy)
    assert result.status is JobStatus.SKIPPED


def test_all_steps_succeed(spy: SpyRunner) -> None:
    result = execute(three_steps(), {}, runner=spy)
    assert result.status is JobStatus.SUCCESS
    assert spy.commands == ["build", "test", "cleanup"]
    assert [r.exit_code for r in result.steps] == [0, 0, 0]
    assert result.failed_step is None


def test_fail_fast_stops_after_failing_step() -> None:
    spy = SpyRunner(exit_codes={"test": 1})
    result = execute(three_steps(), {}, runner=spy)
    assert result.status is JobStatus.FAILED
    assert len(result.steps) == 2
    assert spy.commands == ["build", "test"]
    assert result.failed_step is result.steps[1]
    assert isinstance(result.steps[1].error, StepFailure)
    assert result.steps[1].error.exit_code == 1
    assert result.steps[1].error.job == "linux-rel"


def test_always_succeed_failure_is_recorded_but_not_fatal() -> None:
    spy = SpyRunner(exit_codes={"test": 1})
    result = execute(three_steps(always_succeed=True), {}, runner=spy)
    assert result.status is JobStatus.SUCCESS
    assert len(result.steps) == 3
    assert not result.steps[1].ok
    assert result.steps[1].ignored
    assert result.steps[1].exit_code == 1
    assert result.failed_step is None


def test_launch_error_fails_the_job() -> None:
    spy = SpyRunner(unlaunchable={"test"})
    result = execute(three_steps(), {}, runner=spy)
    assert result.status is JobStatus.FAILED
    assert len(result.steps) == 2
    failed = result.failed_step
    assert failed.launch_failed
    assert isinstance(failed.error, LaunchError)
    assert failed.error.job == "linux-rel"
    assert failed.error.step == "test"


def test_launch_error_on_always_succeed_step_continues() -> None:
    spy = SpyRunner(unlaunchable={"test"})
    result = execute(three_steps(always_succeed=True), {}, runner=spy)
    assert result.status is JobStatus.SUCCESS
    assert spy.commands == ["build", "test", "cleanup"]
    assert len(result.steps) == 3


def test_environment_resolved_once_and_shared(spy: SpyRunner) -> None:
    j = job("build", sh("a"), sh("b"), env={"CC": "clang", "EXTRA": "1"})
    execute(j, {"CC": "gcc", "RUST_BACKTRACE": "1"}, runner=spy)
    envs = [c[1] for c in spy.calls]
    assert envs[0] == envs[1] == {"CC": "clang", "RUST_BACKTRACE": "1", "EXTRA": "1"}


def test_config_error_is_captured_not_raised(spy: SpyRunner) -> None:
    result = execute(job("build", sh("a")), {"CARGO_INCREMENTAL": 0}, runner=spy)
    assert result.status is JobStatus.FAILED
    assert isinstance(result.error, ConfigError)
    assert result.steps == ()
    assert spy.calls == []


def test_step_cwd_is_relative_to_workdir(tmp_path: Path, spy: SpyRunner) -> None:
    j = job("docs", sh("make html", cwd="docs"), sh("ls"))
    execute(j, {}, runner=spy, workdir=tmp_path)
    assert spy.calls[0][2] == (tmp_path / "docs").resolve()
    assert spy.calls[1][2] == tmp_path.resolve()


def test_execute_is_idempotent(spy: SpyRunner) -> None:
    spy.exit_codes = {"test": 2}
    j = three_steps()
    first = execute(j, {"A": "1"}, runner=spy)
    second = execute(j, {"A": "1"}, runner=spy)
    assert first.status == second.status
    assert len(first.steps) == len(second.steps)


class RecordingReporter:
    def __init__(self):
        self.events = []

    def job_state(self, job, status):
        self.events.append(("state", status))

    def step_started(self, job, step, index):
        self.events.append(("start", index))

    def step_finished(self, job, result, index):
        self.events.append(("finish", index))

    def job_finished(self, result):
        self.events.append(("done", result.status))


def test_reporter_sees_state_machine(spy: SpyRunner) -> None:
    reporter = RecordingReporter()
    JobExecutor(runner=spy, reporter=reporter).execute(job("j", sh("a"), sh("b")), {})
    assert reporter.events == [
        ("state", JobStatus.PENDING),
        ("state", JobStatus.RUNNING),
        ("start", 0),
        ("finish", 0),
        ("start", 1),
        ("finish", 1),
        ("done", JobStatus.SUCCESS),
    ]


def test_reporter_for_skipped_job(spy: SpyRunner) -> None:
    reporter = RecordingReporter()
    JobExecutor(runner=spy, reporter=reporter).execute(Job(name="old"), {})
    assert reporter.events == [("state", JobStatus.PENDING), ("done", JobStatus.SKIPPED)]


def test_job_result_requires_terminal_status() -> None:
    with pytest.raises(ValueError):
        JobResult(job="x", status=JobStatus.RUNNING)


def test_run_jobs_keeps_order_and_continues_after_failure() -> None:
    spy = SpyRunner(exit_codes={"b1": 1})
    jobs = [job("a", sh("a1")), job("b", sh("b1"), sh("b2")), Job(name="c"), job("d", sh("d1"))]
    results = run_jobs(JobExecutor(runner=spy), jobs, {}, max_workers=3)
    assert [r.job for r in results] == ["a", "b", "c", "d"]
    assert [r.status for r in results] == [
        JobStatus.SUCCESS,
        JobStatus.FAILED,
        JobStatus.SKIPPED,
        JobStatus.SUCCESS,
    ]
    assert "b2" not in spy.commands


def test_real_processes_fail_fast(tmp_path: Path, host_env) -> None:
    marker = tmp_path / "third-step-ran"
    j = job(
        "real",
        sh(py("open('built', 'w').write('x')")),
        sh(py("import os, sys; sys.exit(0 if os.path.exists('built') else 5)")),
        sh(py("import sys; print('boom'); sys.exit(4)")),
        sh(py(f"open({str(marker)!r}, 'w')")),
    )
    result = execute(j, host_env, runner=StepRunner(), workdir=tmp_path)
    assert result.status is JobStatus.FAILED
    assert [r.exit_code for r in result.steps] == [0, 0, 4]
    assert "boom" in result.failed_step.output
    assert not marker.exists()


def test_to_dict_reports_steps() -> None:
    spy = SpyRunner(exit_codes={"test": 1})
    data = execute(three_steps(), {}, runner=spy).to_dict()
    assert data["job"] == "linux-rel"
    assert data["status"] == "failed"
    assert [s["exit_code"] for s in data["steps"]] == [0, 1]
    assert data["steps"][1]["error"].startswith("[linux-rel] step 'test' failed (exit=1)")
