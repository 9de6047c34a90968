"""Thin CLI wrapper for self21_build.

This module provides the command-line interface using Typer.
All business logic is delegated to the pipeline module.
"""

import json
from pathlib import Path
from typing import Annotated, Any

import click
import typer
from rich.console import Console
from rich.markup import escape
from typer.core import TyperCommand

from self21_build import __version__
from self21_build.config import get_settings, print_settings_json, resolve_options
from self21_build.errors import (
    ImageBuildError,
    InvalidOptionsError,
    PushError,
    Self21BuildError,
)
from self21_build.images.docker import DockerEngine
from self21_build.logging_config import configure_logging
from self21_build.pipeline import run_pipeline
from self21_build.process import STDERR_FD
from self21_build.source.git import GitClient
from self21_build.types import BuildOptions, BuildSummary

EXAMPLES = """\
Examples:

  self21-build                                   # Basic build

  self21-build -t v1.0.0                         # Build with specific tag

  self21-build -p -r ghcr.io/user/self21         # Build and push to GHCR

  self21-build --platform linux/amd64,linux/arm64  # Multi-platform build
"""


class BuildCommand(TyperCommand):
    """Command that exits with status 1 on bad or unknown flags."""

    def parse_args(self, ctx: click.Context, args: list[str]) -> list[str]:
        try:
            return super().parse_args(ctx, args)
        except click.UsageError as e:
            e.exit_code = 1
            raise


app = typer.Typer(
    name="self21-build",
    help="Build the self21 container image from the upstream source.",
    context_settings={"help_option_names": ["-h", "--help"]},
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"self21-build version {__version__}")
        raise typer.Exit()


def show_config_callback(value: bool) -> None:
    """Print effective settings as JSON and exit."""
    if value:
        typer.echo(print_settings_json(get_settings()))
        raise typer.Exit()


def _print_banner(options: BuildOptions) -> None:
    console.print("[blue]\\[INFO][/blue] Building self21 Docker image")
    console.rule(style="dim")
    console.print(f"  Source:   {options.repo_url}")
    console.print(f"  Branch:   {options.branch}")
    console.print(f"  Image:    {options.image_name}:{options.image_tag}")
    console.print(f"  Platform: {options.platform_spec}")
    console.rule(style="dim")
    console.print()


def _print_summary(summary: BuildSummary) -> None:
    console.print("[green]\\[SUCCESS][/green] Build completed!")
    console.print()
    console.rule(style="dim")
    console.print(f"  Image:  {summary.image}")
    console.print(f"  Commit: {summary.commit}")
    if summary.pushed_refs:
        console.print("  Pushed:")
        for ref in summary.pushed_refs:
            console.print(f"    {ref}")
    if summary.source_removed:
        console.print(f"  Source directory removed: {summary.source_dir}")
    console.rule(style="dim")
    console.print()
    console.print("Run with:")
    console.print(f"  {summary.run_instructions[0]}", highlight=False)
    console.print()
    console.print("Or use docker-compose:")
    console.print(f"  {summary.run_instructions[1]}", highlight=False)


@app.command(cls=BuildCommand, epilog=EXAMPLES)
def build(
    name: Annotated[
        str | None,
        typer.Option("--name", "-n", help="Image name (default: self21)"),
    ] = None,
    tag: Annotated[
        str | None,
        typer.Option("--tag", "-t", help="Image tag (default: latest)"),
    ] = None,
    branch: Annotated[
        str | None,
        typer.Option("--branch", "-b", help="Git branch to build (default: master)"),
    ] = None,
    push: Annotated[
        bool,
        typer.Option("--push", "-p", help="Push to registry after build"),
    ] = False,
    registry: Annotated[
        str | None,
        typer.Option("--registry", "-r", help="Registry to push to (default: none)"),
    ] = None,
    platform: Annotated[
        str | None,
        typer.Option(
            "--platform",
            help="Target platform(s), comma-separated (default: linux/amd64)",
        ),
    ] = None,
    no_cache: Annotated[
        bool,
        typer.Option("--no-cache", help="Build without cache"),
    ] = False,
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Remove source directory after build"),
    ] = False,
    dockerfile: Annotated[
        Path | None,
        typer.Option("--file", "-f", help="Dockerfile to build with"),
    ] = None,
    source_dir: Annotated[
        Path | None,
        typer.Option("--source-dir", "-s", help="Checkout directory"),
    ] = None,
    repo_url: Annotated[
        str | None,
        typer.Option("--repo-url", help="Upstream git repository"),
    ] = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output the build summary as JSON"),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
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
    show_config: Annotated[
        bool | None,
        typer.Option(
            "--show-config",
            help="Show effective configuration as JSON and exit",
            callback=show_config_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """Build Docker container for self21.

    Clones or updates the upstream source, builds the image tagged with
    the requested tag and the source commit, and optionally pushes it.
    """
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level)

    try:
        options = resolve_options(
            settings,
            image_name=name,
            image_tag=tag,
            branch=branch,
            push=push,
            registry=registry,
            platform=platform,
            no_cache=no_cache,
            clean=clean,
            repo_url=repo_url,
            source_dir=source_dir,
            dockerfile=dockerfile,
        )
    except InvalidOptionsError as e:
        err_console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1) from None

    if options.push and not options.registry:
        err_console.print(
            "[yellow]\\[WARNING][/yellow] --push needs --registry; "
            "nothing will be pushed"
        )

    if not json_output:
        _print_banner(options)

    # stdout carries only the JSON document
    tool_stdout = STDERR_FD if json_output else None
    try:
        summary = run_pipeline(
            options,
            vcs=GitClient(stdout=tool_stdout),
            engine=DockerEngine(stdout=tool_stdout),
            lock_timeout=settings.lock_timeout,
            server_port=settings.server_port,
        )
    except Self21BuildError as e:
        err_console.print(
            f"[red]\\[ERROR][/red] {escape(f'[{e.code}] {e}')}", highlight=False
        )
        if isinstance(e, (ImageBuildError, PushError)) and options.source_dir.exists():
            err_console.print(f"Source directory kept at {options.source_dir}")
        if json_output:
            failure: dict[str, Any] = {
                "success": False,
                "code": e.code,
                "message": str(e),
            }
            typer.echo(json.dumps(failure, indent=2))
        raise typer.Exit(code=1) from None

    if json_output:
        typer.echo(json.dumps({"success": True, **summary.to_dict()}, indent=2))
    else:
        _print_summary(summary)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
