from .dsl import job, retired, sh, wf, workflow
from .env import resolve, resolve_layers
from .errors import CIError, ConfigError, LaunchError, ManifestError, NotFoundError, StepFailure
from .executor import JobExecutor, execute, run_jobs
from .manifest import dump_manifest, load_manifest, loads_manifest, parse_manifest
from .model import Job, JobResult, JobStatus, Step, StepResult
from .registry import JobRegistry
from .runner import StepRunner

__all__ = [
    "job", "retired", "sh", "wf", "workflow",
    "resolve", "resolve_layers",
    "CIError", "ConfigError", "LaunchError", "ManifestError", "NotFoundError", "StepFailure",
    "JobExecutor", "execute", "run_jobs",
    "dump_manifest", "load_manifest", "loads_manifest", "parse_manifest",
    "Job", "JobResult", "JobStatus", "Step", "StepResult",
    "JobRegistry",
    "StepRunner",
]
