# registry.py
from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, List, Mapping, Optional

from .errors import ManifestError, NotFoundError
from .model import Job, JobResult, Step

if TYPE_CHECKING:
    from .executor import JobExecutor


def step_to_entry(step: Step) -> Any:
    """Serialize a step back to its manifest form (plain string when possible)."""
    if not step.always_succeed and step.cwd is None and step.name == step.run:
        return step.run
    entry: Dict[str, Any] = {"run": step.run}
    if step.name != step.run:
        entry["name"] = step.name
    if step.always_succeed:
        entry["always_succeed"] = True
    if step.cwd is not None:
        entry["cwd"] = step.cwd
    return entry


class JobRegistry:
    """
    Job name -> Job, in declaration order, plus the global defaults.

    Read-only once built.
    """

    def __init__(self, jobs: Iterable[Job], defaults: Optional[Mapping[str, str]] = None, source: str | None = None):
        by_name: Dict[str, Job] = {}
        for j in jobs:
            if j.name in by_name:
                raise ManifestError("duplicate job name", source=source, job=j.name)
            by_name[j.name] = j
        self._jobs = MappingProxyType(by_name)
        self._defaults = MappingProxyType(dict(defaults or {}))
        self.source = source

    @property
    def defaults(self) -> Mapping[str, str]:
        return self._defaults

    def lookup(self, name: str) -> Job:
        try:
            return self._jobs[name]
        except KeyError:
            raise NotFoundError(name=name, known=list(self._jobs)) from None

    def names(self) -> List[str]:
        """Job names in declaration order."""
        return list(self._jobs)

    def is_retired(self, name: str) -> bool:
        return self.lookup(name).retired

    def active(self) -> List[Job]:
        return [j for j in self._jobs.values() if not j.retired]

    def retired(self) -> List[Job]:
        return [j for j in self._jobs.values() if j.retired]

    def dispatch(self, name: str, executor: JobExecutor) -> JobResult:
        """Run one job by name against this registry's defaults."""
        return executor.execute(self.lookup(name), self._defaults)

    def __contains__(self, name: object) -> bool:
        return name in self._jobs

    def __iter__(self) -> Iterator[Job]:
        return iter(self._jobs.values())

    def __len__(self) -> int:
        return len(self._jobs)

    def to_dict(self) -> Dict[str, Any]:
        """Manifest-shaped dict; load(dump(r)) preserves names, order and steps."""
        out: Dict[str, Any] = {}
        if self._defaults:
            out["env"] = dict(self._defaults)
        for j in self._jobs.values():
            entry: Dict[str, Any] = {}
            if j.env:
                entry["env"] = dict(j.env)
            entry["commands"] = [step_to_entry(s) for s in j.steps]
            if j.reason:
                entry["reason"] = j.reason
            out[j.name] = entry
        return out
