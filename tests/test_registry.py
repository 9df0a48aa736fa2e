from __future__ import annotations

import pytest

from stepci.dsl import job, retired, sh, wf
from stepci.errors import ManifestError, NotFoundError
from stepci.executor import JobExecutor
from stepci.model import JobStatus

from conftest import SpyRunner


def sample():
    return wf(
        job("linux-rel", sh("./mach build --release"), sh("./mach test-unit")),
        retired("linux-dev", reason="Moved to Taskcluster"),
        job("linux-css", sh("./mach test-wpt", always_succeed=True)),
        retired("arm32"),
        env={"RUST_BACKTRACE": "1"},
    )


def test_names_in_declaration_order() -> None:
    assert sample().names() == ["linux-rel", "linux-dev", "linux-css", "arm32"]


def test_lookup_and_not_found() -> None:
    reg = sample()
    assert reg.lookup("linux-css").steps[0].always_succeed
    with pytest.raises(NotFoundError) as exc:
        reg.lookup("mac-rel")
    assert exc.value.name == "mac-rel"
    assert "linux-rel" in exc.value.known


def test_is_retired() -> None:
    reg = sample()
    assert reg.is_retired("linux-dev")
    assert reg.is_retired("arm32")
    assert not reg.is_retired("linux-rel")
    with pytest.raises(NotFoundError):
        reg.is_retired("missing")


def test_active_and_retired_partitions() -> None:
    reg = sample()
    assert [j.name for j in reg.active()] == ["linux-rel", "linux-css"]
    assert [j.name for j in reg.retired()] == ["linux-dev", "arm32"]


def test_container_protocol() -> None:
    reg = sample()
    assert len(reg) == 4
    assert "arm32" in reg
    assert "arm33" not in reg
    assert [j.name for j in reg] == reg.names()


def test_duplicate_names_rejected() -> None:
    with pytest.raises(ManifestError) as exc:
        wf(job("a", sh("x")), job("a", sh("y")))
    assert exc.value.job == "a"


def test_registry_and_jobs_are_read_only() -> None:
    reg = sample()
    with pytest.raises(TypeError):
        reg.defaults["RUST_BACKTRACE"] = "0"
    j = reg.lookup("linux-rel")
    with pytest.raises(TypeError):
        j.env["CC"] = "gcc"
    with pytest.raises(AttributeError):
        j.steps.append(sh("more"))


def test_dispatch_uses_registry_defaults() -> None:
    spy = SpyRunner()
    reg = sample()
    result = reg.dispatch("linux-rel", JobExecutor(runner=spy))
    assert result.status is JobStatus.SUCCESS
    assert all(env == {"RUST_BACKTRACE": "1"} for _cmd, env, _cwd in spy.calls)


def test_dispatch_retired_job_is_skipped() -> None:
    spy = SpyRunner()
    assert sample().dispatch("arm32", JobExecutor(runner=spy)).status is JobStatus.SKIPPED
    assert spy.calls == []


def test_dispatch_unknown_job() -> None:
    with pytest.raises(NotFoundError):
        sample().dispatch("nope", JobExecutor(runner=SpyRunner()))


def test_job_helper_without_steps_is_retired() -> None:
    assert job("old").retired


def test_job_helper_applies_default_cwd() -> None:
    j = job("docs", sh("make html"), sh("ls", cwd="."), "make check", cwd="docs")
    assert [s.cwd for s in j.steps] == ["docs", ".", "docs"]


def test_to_dict_shape() -> None:
    data = sample().to_dict()
    assert list(data) == ["env", "linux-rel", "linux-dev", "linux-css", "arm32"]
    assert data["linux-dev"] == {"commands": [], "reason": "Moved to Taskcluster"}
    assert data["linux-css"]["commands"] == [{"run": "./mach test-wpt", "always_succeed": True}]
