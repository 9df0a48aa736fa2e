# cli.py
from __future__ import annotations

import json
import os
import sys
from pathlib import Path

import click

from stepci import settings
from stepci.env import resolve, resolve_layers
from stepci.errors import CIError, ManifestError, NotFoundError
from stepci.executor import JobExecutor, run_jobs
from stepci.log import setup_logging
from stepci.manifest import load_manifest
from stepci.model import JobStatus
from stepci.registry import JobRegistry
from stepci.runner import StepRunner
from stepci.ui.console import Console, get_console, set_console


def find_manifest_files() -> list[Path]:
    """
    Find candidate manifest files in the current directory.

    Returns:
        Sorted list of stepci.yml / *_steps.yml style files
    """
    current_dir = Path(".")
    found: set[Path] = set()
    for pattern in ("stepci.yml", "stepci.yaml", "*_steps.yml", "*_steps.yaml"):
        found.update(p for p in current_dir.glob(pattern) if p.is_file())
    return sorted(found)


def discover_manifest(manifest_arg: str | None) -> Path:
    """
    Discover the manifest file from argument, settings or the current directory.

    Raises:
        SystemExit: If no manifest (or more than one candidate) is found
    """
    console = get_console()

    if manifest_arg:
        manifest_path = Path(manifest_arg)
        if not manifest_path.exists():
            console.print_error(
                "Manifest file not found",
                f"Could not find manifest file: {manifest_arg}",
                suggestion="Specify a different path:\n  stepci --manifest ci/steps.yml run <job>",
            )
            sys.exit(1)
        return manifest_path

    default = Path(settings.MANIFEST)
    if default.exists():
        return default

    manifest_files = find_manifest_files()

    if len(manifest_files) == 0:
        console.print_error(
            "No manifest file found",
            "Could not find any manifest files.",
            details=[
                "Looked for:",
                f"  {settings.MANIFEST}",
                "  stepci.yml / stepci.yaml",
                "  *_steps.yml / *_steps.yaml",
            ],
            suggestion="Create stepci.yml, set STEPCI_MANIFEST, or pass --manifest.",
        )
        sys.exit(1)

    if len(manifest_files) > 1:
        console.print_error(
            "Multiple manifest files found",
            "Found multiple manifest files. Please specify which one to use:",
            details=[str(f) for f in manifest_files],
            suggestion=f"Specify a manifest explicitly:\n  stepci --manifest {manifest_files[0]} run <job>",
        )
        sys.exit(1)

    return manifest_files[0]


def _load(ctx) -> JobRegistry:
    console = get_console()
    manifest_path = discover_manifest(ctx.obj.get("manifest"))
    try:
        return load_manifest(manifest_path)
    except ManifestError as e:
        console.print_error("Invalid manifest", str(e), suggestion="Run `stepci validate` after fixing it.")
        sys.exit(1)


@click.group()
@click.option(
    "--manifest",
    default=None,
    help=f"Manifest file path (defaults to $STEPCI_MANIFEST or {settings.MANIFEST})",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, manifest, debug):
    """stepci: run CI jobs declared in a YAML manifest."""
    set_console(Console(debug=debug))
    setup_logging("DEBUG" if debug else None)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["manifest"] = manifest


@cli.command()
@click.argument("names", nargs=-1)
@click.option("--all", "run_all", is_flag=True, default=False, help="Run every job in declaration order")
@click.option("--workers", default=settings.WORKERS, show_default=True, type=int, help="Jobs run in parallel")
@click.option("--workdir", default=".", show_default=True, type=click.Path(file_okay=False), help="Working directory for steps")
@click.option("--inherit-env/--no-inherit-env", default=True, show_default=True, help="Start from the host environment")
@click.option("--stream/--no-stream", default=False, show_default=True, help="Echo step output as it arrives")
@click.option("--report", default=None, type=click.Path(dir_okay=False), help="Write a JSON report of the results")
@click.pass_context
def run(ctx, names, run_all, workers, workdir, inherit_env, stream, report):
    """Run one or more jobs. Exit status is 1 if any job failed."""
    console = get_console()
    if not names and not run_all:
        raise click.UsageError("Name at least one job, or pass --all.")

    registry = _load(ctx)
    requested = registry.names() if run_all else list(names)

    jobs = []
    missing = []
    for name in requested:
        try:
            jobs.append(registry.lookup(name))
        except NotFoundError as e:
            missing.append(name)
            console.print_error(
                "Job not found",
                str(e),
                suggestion="List the jobs in this manifest:\n  stepci list",
            )

    try:
        console.print_run_started(manifest=registry.source or "<manifest>", job_count=len(jobs))

        defaults = resolve_layers(os.environ if inherit_env else None, registry.defaults)
        runner = StepRunner(echo=(lambda line: click.echo(line, nl=False)) if stream else None)
        executor = JobExecutor(runner=runner, workdir=workdir, reporter=console)
        results = run_jobs(executor, jobs, defaults, max_workers=workers)

        console.print_results(results)

        if report:
            payload = {
                "manifest": registry.source,
                "results": [r.to_dict() for r in results],
                "not_found": missing,
            }
            Path(report).write_text(json.dumps(payload, indent=2), encoding="utf-8")
            console.print_info(f"Report written to {report}")

        if missing or any(r.status is JobStatus.FAILED for r in results):
            sys.exit(1)

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except CIError as e:
        console.print_error("Run failed", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command(name="list")
@click.pass_context
def list_jobs(ctx):
    """List jobs in declaration order with their active/retired status."""
    console = get_console()
    registry = _load(ctx)
    console.print_jobs(registry)


@cli.command()
@click.pass_context
def validate(ctx):
    """Parse the manifest; exit 0 if it is well-formed."""
    console = get_console()
    registry = _load(ctx)
    console.print_info(
        f"{registry.source}: OK ({len(registry.active())} active, {len(registry.retired())} retired)"
    )


@cli.command()
@click.argument("name")
@click.pass_context
def show(ctx, name):
    """Show a job's steps and the environment its steps receive."""
    console = get_console()
    registry = _load(ctx)
    try:
        job = registry.lookup(name)
        env = resolve(registry.defaults, job.env)
        console.print_job_detail(job, env)
    except CIError as e:
        console.print_error("Cannot show job", str(e))
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


if __name__ == "__main__":
    cli()
