# manifest.py
from __future__ import annotations

import logging
import shlex
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from .errors import ManifestError
from .model import Job, Step
from .registry import JobRegistry

logger = logging.getLogger(__name__)

GLOBAL_ENV_KEY = "env"
JOB_KEYS = {"env", "commands", "reason"}
STEP_KEYS = {"run", "name", "always_succeed", "cwd"}


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that refuses duplicate mapping keys instead of keeping the last one."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _value_node in node.value:
            if key_node.tag == "tag:yaml.org,2002:merge":
                continue
            key = self.construct_object(key_node, deep=deep)
            try:
                duplicate = key in seen
            except TypeError:
                duplicate = False
            if duplicate:
                raise ManifestError(
                    f"duplicate key {key!r} (line {key_node.start_mark.line + 1})",
                )
            try:
                seen.add(key)
            except TypeError:
                pass
        return super().construct_mapping(node, deep=deep)


# ---------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------

def _parse_env(raw: Any, *, source: str | None, job: str | None = None) -> Dict[str, str]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ManifestError(f"'env' must be a mapping, got {type(raw).__name__}", source=source, job=job)
    env: Dict[str, str] = {}
    for key, value in raw.items():
        if not isinstance(key, str) or not key or "=" in key or "\0" in key:
            raise ManifestError(f"invalid environment variable name {key!r}", source=source, job=job)
        if not isinstance(value, str):
            raise ManifestError(
                f"env value for {key!r} must be a string, got {type(value).__name__} "
                f"(quote it in YAML: {key}: \"{value}\")",
                source=source,
                job=job,
            )
        if "\0" in value:
            raise ManifestError(f"env value for {key!r} contains a NUL byte", source=source, job=job)
        env[key] = value
    return env


def _check_command(cmd: str, *, source: str | None, job: str) -> None:
    if not cmd.strip():
        raise ManifestError("empty command", source=source, job=job)
    if "\0" in cmd:
        raise ManifestError(f"command contains a NUL byte: {cmd!r}", source=source, job=job)
    try:
        shlex.split(cmd)
    except ValueError as e:
        raise ManifestError(f"cannot parse command {cmd!r}: {e}", source=source, job=job) from None


def _parse_step(raw: Any, *, source: str | None, job: str) -> Step:
    if isinstance(raw, str):
        _check_command(raw, source=source, job=job)
        return Step(run=raw)

    if isinstance(raw, Mapping):
        unknown = sorted(str(k) for k in raw if k not in STEP_KEYS)
        if unknown:
            raise ManifestError(f"unknown step keys: {unknown}", source=source, job=job)
        run = raw.get("run")
        if not isinstance(run, str):
            raise ManifestError("step mapping needs a string 'run'", source=source, job=job)
        _check_command(run, source=source, job=job)

        always_succeed = raw.get("always_succeed", False)
        if not isinstance(always_succeed, bool):
            raise ManifestError("'always_succeed' must be true or false", source=source, job=job)
        name = raw.get("name")
        if name is not None and not isinstance(name, str):
            raise ManifestError("step 'name' must be a string", source=source, job=job)
        cwd = raw.get("cwd")
        if cwd is not None and not isinstance(cwd, str):
            raise ManifestError("step 'cwd' must be a string", source=source, job=job)
        return Step(run=run, name=name or "", always_succeed=always_succeed, cwd=cwd)

    raise ManifestError(
        f"step entries must be strings, got {type(raw).__name__}: {raw!r}",
        source=source,
        job=job,
    )


def _parse_job(name: Any, raw: Any, *, source: str | None) -> Job:
    if not isinstance(name, str) or not name:
        raise ManifestError(f"job names must be non-empty strings, got {name!r}", source=source)

    # `linux-dev: []` and `arm32:` are shorthand for a retired job.
    if raw is None:
        raw = {}
    elif isinstance(raw, list):
        raw = {"commands": raw}
    elif not isinstance(raw, Mapping):
        raise ManifestError(
            f"job entry must be a mapping or a command list, got {type(raw).__name__}",
            source=source,
            job=name,
        )

    unknown = sorted(str(k) for k in raw if k not in JOB_KEYS)
    if unknown:
        raise ManifestError(f"unknown job keys: {unknown}", source=source, job=name)

    commands = raw.get("commands")
    if commands is None:
        commands = []
    if not isinstance(commands, list):
        raise ManifestError(f"'commands' must be a list, got {type(commands).__name__}", source=source, job=name)

    reason = raw.get("reason")
    if reason is not None and not isinstance(reason, str):
        raise ManifestError("'reason' must be a string", source=source, job=name)

    return Job(
        name=name,
        steps=tuple(_parse_step(c, source=source, job=name) for c in commands),
        env=_parse_env(raw.get("env"), source=source, job=name),
        reason=reason,
    )


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------

def parse_manifest(data: Any, source: str | None = None) -> JobRegistry:
    """
    Build a JobRegistry from already-parsed manifest data.

    Top-level `env` holds the global defaults; every other key is a job.
    """
    if data is None:
        raise ManifestError("manifest is empty", source=source)
    if not isinstance(data, Mapping):
        raise ManifestError(f"top level must be a mapping, got {type(data).__name__}", source=source)

    defaults = _parse_env(data.get(GLOBAL_ENV_KEY), source=source)
    jobs: List[Job] = [
        _parse_job(name, raw, source=source)
        for name, raw in data.items()
        if name != GLOBAL_ENV_KEY
    ]
    registry = JobRegistry(jobs, defaults=defaults, source=source)
    logger.debug(
        "loaded %d job(s) (%d retired) from %s",
        len(registry),
        len(registry.retired()),
        source or "<string>",
    )
    return registry


def loads_manifest(text: str, source: str | None = None) -> JobRegistry:
    try:
        data = yaml.load(text, Loader=_UniqueKeyLoader)
    except ManifestError as e:
        e.source = source
        raise
    except yaml.YAMLError as e:
        raise ManifestError(f"invalid YAML: {e}", source=source) from e
    return parse_manifest(data, source=source)


def load_manifest(path: str | Path) -> JobRegistry:
    """Load a manifest file into a JobRegistry."""
    manifest_path = Path(path).expanduser()
    try:
        text = manifest_path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"cannot read manifest: {e.strerror or e}", source=str(manifest_path)) from e
    return loads_manifest(text, source=str(manifest_path))


def dump_manifest(registry: JobRegistry) -> str:
    """Serialize a registry back to manifest YAML, keeping declaration order."""
    return yaml.safe_dump(registry.to_dict(), sort_keys=False, default_flow_style=False)
