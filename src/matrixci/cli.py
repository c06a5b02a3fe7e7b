# cli.py
from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import click

from matrixci import settings
from matrixci.aggregate import config_error
from matrixci.errors import ConfigurationError
from matrixci.executor import ShellExecutor
from matrixci.gate import describe, evaluate
from matrixci.git_facts.git import current_branch, current_tag, get_remote_url
from matrixci.loader import YAML_SUFFIXES, load_pipeline
from matrixci.model import EventContext, EventType, PipelineOutcome, PipelineStatus
from matrixci.runner import plan as make_plan
from matrixci.runner import run_pipeline
from matrixci.ui.console import Console, get_console, set_console


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    default_workflow = current_dir / settings.DEFAULT_WORKFLOW
    if default_workflow.exists():
        workflow_files.append(default_workflow)

    for path in current_dir.glob("*_workflow.py"):
        if path != default_workflow:
            workflow_files.append(path)

    for suffix in YAML_SUFFIXES:
        candidate = current_dir / f"matrixci{suffix}"
        if candidate.exists():
            workflow_files.append(candidate)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument, MATRIXCI_WORKFLOW, or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    workflow_arg = workflow_arg or settings.WORKFLOW
    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists() and not workflow_path.suffix:
            workflow_path = Path(str(workflow_path) + ".py")
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  matrixci run --workflow my_workflow.py",
            )
            sys.exit(2)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                f"  {settings.DEFAULT_WORKFLOW}",
                "  *_workflow.py",
                "  matrixci.yml / matrixci.yaml",
            ],
            suggestion=f"Create a workflow file:\n  {settings.DEFAULT_WORKFLOW}\n\nOr specify a workflow explicitly:\n  matrixci run --workflow my_workflow.py",
        )
        sys.exit(2)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion=f"Specify a workflow explicitly:\n  matrixci run --workflow {workflow_files[0]}",
        )
        sys.exit(2)

    return workflow_files[0]


def resolve_event(event: str | None, branch: str | None, tag: str | None) -> EventContext:
    """
    Build the event context.

    Explicit options win; otherwise MATRIXCI_* / TRAVIS_* variables;
    otherwise a manual event on the local checkout's branch and tag.
    """
    console = get_console()

    if event is None and branch is None and tag is None:
        from_env = EventContext.from_env(os.environ)
        if from_env is not None:
            console.print_debug(f"Event from environment: {from_env.to_dict()}")
            return from_env

    if branch is None:
        try:
            branch = current_branch()
        except (subprocess.CalledProcessError, FileNotFoundError):
            raise ConfigurationError(
                ["could not determine the branch from git; pass --branch"],
                source="event",
            ) from None
        if tag is None:
            try:
                tag = current_tag()
            except FileNotFoundError:
                tag = None
        console.print_debug(f"Event from git checkout: branch={branch} tag={tag}")

    return EventContext.create(event or EventType.MANUAL, branch, tag)


def write_report(path: str | None, outcome: PipelineOutcome) -> None:
    if not path:
        return
    report_path = Path(path)
    report_path.parent.mkdir(parents=True, exist_ok=True)
    report_path.write_text(json.dumps(outcome.to_dict(), indent=2) + "\n", encoding="utf-8")
    get_console().print_debug(f"Report written to {report_path}")


def _repo_name() -> str:
    try:
        repo_url = get_remote_url("origin")
        return repo_url.rstrip("/").split("/")[-1].replace(".git", "")
    except (subprocess.CalledProcessError, FileNotFoundError):
        return Path(".").resolve().name


def _event_options(fn):
    fn = click.option("--tag", default=None, help="Tag of the triggering commit (empty for none)")(fn)
    fn = click.option("--branch", default=None, help="Branch of the triggering event (defaults to the git checkout)")(fn)
    fn = click.option(
        "--event",
        default=None,
        help="Event type: push, pull_request, cron, manual (defaults to env or manual)",
    )(fn)
    fn = click.option(
        "--workflow",
        default=None,
        help=f"Workflow file path (defaults to {settings.DEFAULT_WORKFLOW} if present)",
    )(fn)
    return fn


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and full step output)",
)
@click.pass_context
def cli(ctx, debug):
    """matrixci: channel-matrix CI orchestrator."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@_event_options
@click.option("--workers", default=settings.WORKERS, type=click.IntRange(min=1), help="Number of job instances run in parallel")
@click.option("--repo-root", default=".", show_default=True, help="Directory step cwd values are relative to")
@click.option("--report", default=settings.REPORT_PATH, help="Write the pipeline outcome as JSON to this path")
@click.option(
    "--wait/--no-wait",
    default=True,
    show_default=True,
    help="After a fast-finish report, wait for allow-failure jobs and print their results",
)
@click.pass_context
def run(ctx, workflow, event, branch, tag, workers, repo_root, report, wait):
    """Run a matrixci pipeline."""
    console = get_console()
    workflow_path = discover_workflow(workflow)
    pipeline_name = workflow_path.stem

    try:
        pipeline = load_pipeline(workflow_path)
        pipeline_name = pipeline.name
        ev = resolve_event(event, branch, tag)

        console.print_run_started(
            repository=_repo_name(),
            pipeline=pipeline.name,
            workflow=workflow_path.name,
            event=f"{ev.event_type.value} branch={ev.branch} tag={ev.tag or '-'}",
            channel_count=len(pipeline.channels),
        )

        executor = ShellExecutor(repo_root, channel_var=settings.CHANNEL_VAR)
        result = run_pipeline(pipeline, ev, executor=executor, max_workers=workers, console=console)

        outcome = result.outcome
        if outcome.status is PipelineStatus.NOT_RUN:
            console.print_info("Pipeline not run (gate rejected the event)")
        else:
            console.print_results(outcome)
        write_report(report, outcome)

        if result.early and wait:
            final = result.wait(on_late=lambda inst: console.print_late_result(inst.snapshot()))
            write_report(report, final)

        sys.exit(outcome.exit_code)

    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        write_report(report, config_error(pipeline_name, e))
        sys.exit(2)
    except FileNotFoundError as e:
        console.print_error("Workflow file not found", str(e))
        sys.exit(2)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)


@cli.command()
@_event_options
@click.pass_context
def plan(ctx, workflow, event, branch, tag):
    """Show which steps each channel would run, without running them."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        pipeline = load_pipeline(workflow_path)
        ev = resolve_event(event, branch, tag)
        p = make_plan(pipeline, ev)
    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(2)
    except FileNotFoundError as e:
        console.print_error("Workflow file not found", str(e))
        sys.exit(2)

    console.print_gate(p.gate_open, p.gate_reason)
    console.print_plan(p)


@cli.command()
@_event_options
@click.pass_context
def gate(ctx, workflow, event, branch, tag):
    """Evaluate the run gate only. Exits 0 if the pipeline would run, 1 if not."""
    console = get_console()
    workflow_path = discover_workflow(workflow)

    try:
        pipeline = load_pipeline(workflow_path)
        ev = resolve_event(event, branch, tag)
    except ConfigurationError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(2)
    except FileNotFoundError as e:
        console.print_error("Workflow file not found", str(e))
        sys.exit(2)

    open_ = evaluate(ev, mainline=pipeline.mainline)
    console.print_gate(open_, describe(ev, mainline=pipeline.mainline))
    sys.exit(0 if open_ else 1)


if __name__ == "__main__":
    cli()
