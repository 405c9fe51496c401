"""Thin CLI wrapper for localbuild.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import contextlib
import json
import logging
import signal
import sys
import threading
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from localbuild import __version__
from localbuild.config import get_settings, print_settings_json

app = typer.Typer(
    name="localbuild",
    help="localbuild - build container images for Kubernetes deployments",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"localbuild version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """localbuild - build container images for Kubernetes deployments."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = get_settings()
    if json_output:
        console.print(print_settings_json(settings), soft_wrap=True, markup=False)
    else:
        kubeconfig_display = (
            str(settings.kubeconfig) if settings.kubeconfig else "(KUBECONFIG or ~/.kube/config)"
        )
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Cluster:[/bold]")
        console.print(f"  Kubeconfig:          {kubeconfig_display}")
        console.print(f"  Kube context:        {settings.kube_context or '(current)'}")
        console.print(f"  Local cluster:       {_display_optional(settings.local_cluster)}")
        console.print()
        console.print("[bold]Build:[/bold]")
        console.print(f"  Push:                {_display_optional(settings.push)}")
        console.print(f"  Use docker CLI:      {settings.use_docker_cli}")
        console.print(f"  Use BuildKit:        {settings.use_buildkit}")
        console.print(f"  Prune:               {settings.prune}")
        console.print(f"  Docker binary:       {settings.docker_binary}")
        console.print(f"  Build timeout:       {settings.build_timeout or '(none)'}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Database URL:        {settings.db_url}")
        console.print(f"  Log level:           {settings.log_level}")


def _display_optional(value: bool | None) -> str:
    return "(auto)" if value is None else str(value)


builds_app = typer.Typer(help="Build images")
app.add_typer(builds_app, name="build")


@builds_app.command("run")
def build_run(
    build_file: Annotated[
        Path,
        typer.Argument(help="Build file (YAML or JSON) listing the artifacts"),
    ],
    tag: Annotated[
        str,
        typer.Option("--tag", "-t", help="Tag applied to every artifact"),
    ] = "latest",
    push: Annotated[
        bool | None,
        typer.Option(
            "--push/--no-push",
            help="Push images (default: push unless the cluster is local)",
        ),
    ] = None,
    use_cli: Annotated[
        bool,
        typer.Option("--cli", help="Build with the docker CLI"),
    ] = False,
    buildkit: Annotated[
        bool,
        typer.Option("--buildkit", help="Build with the docker CLI and BuildKit"),
    ] = False,
    cleanup: Annotated[
        bool,
        typer.Option("--cleanup", help="Remove the built images after the build"),
    ] = False,
    record: Annotated[
        bool,
        typer.Option("--record/--no-record", help="Record builds in the history"),
    ] = True,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build the artifacts of a build file.

    Artifacts are built one at a time in file order; the first failure
    stops the run. Prints the reference to deploy for each image.
    """
    from localbuild.builds.pipeline import LocalBuilder
    from localbuild.builds.policy import merge_properties
    from localbuild.builds.schema import load_build_file
    from localbuild.builds.service import make_recorder
    from localbuild.cluster.context import KubeContextProvider
    from localbuild.db import (
        create_all_tables,
        get_engine,
        get_session,
        get_session_factory,
    )
    from localbuild.engine.client import DockerEngine
    from localbuild.errors import LocalBuildError

    try:
        build_config = load_build_file(build_file)
    except FileNotFoundError:
        console.print(f"[red]Build file not found: {build_file}[/red]")
        raise typer.Exit(code=1) from None
    except (ValidationError, ValueError) as e:
        console.print(f"[red]Invalid build file {build_file}:[/red]")
        console.print(escape(str(e)))
        raise typer.Exit(code=1) from None

    settings = get_settings()
    overrides: dict[str, object] = {}
    if push is not None:
        overrides["push"] = push
    if use_cli:
        overrides["useDockerCLI"] = True
    if buildkit:
        overrides["useBuildkit"] = True
    properties = merge_properties(
        settings.local_build_properties(), build_config.local_properties(), overrides
    )
    tags = {a.image_name: f"{a.image_name}:{tag}" for a in build_config.artifacts}

    try:
        engine = DockerEngine.from_env()
    except LocalBuildError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    # Progress goes to stderr when stdout carries JSON
    out = sys.stderr if json_output else sys.stdout
    cancel = threading.Event()

    def _on_interrupt(signum: int, frame: object) -> None:
        err_console.print("[yellow]Cancelling build...[/yellow]")
        cancel.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)

    previous_handler = signal.signal(signal.SIGINT, _on_interrupt)

    history = contextlib.nullcontext()
    if record:
        db_engine = get_engine(settings.db_url)
        create_all_tables(db_engine)
        history = get_session(get_session_factory(db_engine))

    failure: LocalBuildError | None = None
    # Failures are recorded too, so the session must commit before exiting
    with history as session:
        builder = LocalBuilder(
            engine,
            KubeContextProvider(settings),
            settings,
            recorder=make_recorder(session, tags) if session is not None else None,
        )
        try:
            report = builder.build(
                build_config.artifacts, tags, properties=properties, out=out, cancel=cancel
            )
        except LocalBuildError as e:
            failure = e
        finally:
            signal.signal(signal.SIGINT, previous_handler)

    if failure is not None:
        failed = f" [{failure.image_name}]" if failure.image_name else ""
        console.print(f"[red]{escape(f'Build failed{failed}: {failure}')}[/red]")
        raise typer.Exit(code=1)

    if cleanup:
        try:
            builder.prune(report.built_images, out=out)
        except LocalBuildError as e:
            console.print(f"[yellow]Cleanup incomplete: {escape(str(e))}[/yellow]")

    if json_output:
        output = {
            "kube_context": report.policy.kube_context,
            "local_cluster": report.policy.is_local_cluster,
            "pushed": report.policy.push_images,
            "builds": [
                {
                    "image_name": o.image_name,
                    "tag": o.tag,
                    "reference": o.final_reference,
                    "digest_form": o.is_digest_form,
                    "image_id": o.image_id,
                }
                for o in report.outcomes
            ],
            "warnings": [w.message for w in report.warnings],
        }
        console.print(json.dumps(output, indent=2), soft_wrap=True, markup=False)
    else:
        console.print()
        console.print("[bold]Build Results:[/bold]")
        for o in report.outcomes:
            console.print(f"  [green]✓ {o.image_name}[/green] -> {o.final_reference}")
        if report.warnings:
            console.print()
            console.print("[bold]Warnings:[/bold]")
            for w in report.warnings:
                console.print(f"  [yellow]{escape(w.message)}[/yellow]")


@builds_app.command("list")
def builds_list(
    image_name: Annotated[
        str | None,
        typer.Option("--image", "-i", help="Filter by image name"),
    ] = None,
    status: Annotated[
        str | None,
        typer.Option(
            "--status", "-s", help="Filter by status (pending/running/succeeded/failed)"
        ),
    ] = None,
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", help="Maximum number of records to return"),
    ] = 100,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List build records."""
    from localbuild.builds.service import list_builds
    from localbuild.db import create_all_tables, get_engine, get_session_factory
    from localbuild.types import BuildStatus

    status_filter: BuildStatus | None = None
    if status:
        try:
            status_filter = BuildStatus(status)
        except ValueError:
            console.print(f"[red]Invalid status: {status}[/red]")
            console.print("Valid values: pending, running, succeeded, failed")
            raise typer.Exit(code=1) from None

    engine = get_engine()
    create_all_tables(engine)
    factory = get_session_factory(engine)

    with factory() as session:
        builds = list_builds(
            session,
            image_name=image_name,
            status=status_filter,
            limit=limit,
        )

        if not builds:
            if json_output:
                console.print("[]")
            else:
                console.print("[yellow]No build records found[/yellow]")
            return

        if json_output:
            output = [
                {
                    "id": b.id,
                    "image_name": b.image_name,
                    "tag": b.tag,
                    "status": b.status,
                    "kube_context": b.kube_context,
                    "strategy": b.strategy,
                    "pushed": b.pushed,
                    "final_reference": b.final_reference,
                    "image_id": b.image_id,
                    "requested_at": b.requested_at.isoformat()
                    if b.requested_at
                    else None,
                    "finished_at": b.finished_at.isoformat() if b.finished_at else None,
                    "error_type": b.error_type,
                    "error_message": b.error_message,
                }
                for b in builds
            ]
            console.print(json.dumps(output, indent=2), soft_wrap=True, markup=False)
        else:
            console.print(f"[bold]Found {len(builds)} build(s):[/bold]")
            console.print()
            for b in builds:
                status_color = {
                    "succeeded": "green",
                    "failed": "red",
                    "running": "blue",
                    "pending": "yellow",
                }.get(b.status, "white")
                console.print(f"  [{status_color}]Build #{b.id}[/{status_color}]")
                console.print(f"    Image: {b.image_name}")
                console.print(f"    Tag: {b.tag}")
                console.print(f"    Status: {b.status}")
                console.print(f"    Context: {b.kube_context or 'N/A'}")
                if b.final_reference:
                    console.print(f"    Reference: {b.final_reference}")
                if b.error_message:
                    console.print(f"    Error: {b.error_message}")
                console.print()


if __name__ == "__main__":
    app()
