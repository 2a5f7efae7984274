"""Thin CLI wrapper for mfe_build.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import asyncio
import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from mfe_build import __version__
from mfe_build.config import Settings, get_settings, print_settings_json
from mfe_build.errors import MfeBuildError
from mfe_build.logging import configure_logging
from mfe_build.types import RunMode, RunSummary

app = typer.Typer(
    name="mfe-build",
    help="Micro-frontend builder - incremental builds, vendor chunks and import maps",
    no_args_is_help=True,
)
console = Console()

RootOption = Annotated[
    Path | None,
    typer.Option("--root", "-r", help="Repository root (default: current directory)"),
]
ModeOption = Annotated[
    RunMode | None,
    typer.Option("--mode", "-m", help="Where the previous baseline comes from"),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"mfe-build version {__version__}")
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
    """Micro-frontend builder - incremental builds, vendor chunks and import maps."""


def _settings(root: Path | None = None, mode: RunMode | None = None) -> Settings:
    settings = get_settings(root_dir=root, mode=mode)
    configure_logging(settings.log_level)
    return settings


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
        console.print(print_settings_json(settings))
    else:
        console.print("[bold]Effective Configuration:[/bold]")
        console.print()
        console.print("[bold]Layout:[/bold]")
        console.print(f"  Root directory:      {settings.root_dir}")
        console.print(f"  Packages directory:  {settings.packages_path}")
        console.print(f"  Dist directory:      {settings.dist_path}")
        console.print(f"  Local scope:         {settings.scope}")
        console.print(f"  Project file:        {settings.project_config}")
        console.print()
        console.print("[bold]Operational:[/bold]")
        console.print(f"  Mode:                {settings.mode.value}")
        console.print(f"  Staged URL:          {settings.staged_url or '(project file)'}")
        console.print(
            f"  Production URL:      {settings.production_url or '(project file)'}"
        )
        console.print(f"  Log level:           {settings.log_level}")
        console.print()
        console.print("[bold]Bundler:[/bold]")
        console.print(f"  Command:             {' '.join(settings.bundler_command)}")
        console.print(f"  Max builds:          {settings.max_concurrent_builds}")
        console.print(f"  Source maps:         {settings.sourcemap}")
        console.print(f"  Minify:              {settings.minify}")
        console.print()
        console.print("[bold]Timeouts (seconds):[/bold]")
        console.print(f"  Fetch timeout:       {settings.fetch_timeout}")


@app.command()
def changes(
    root: RootOption = None,
    mode: ModeOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show source changes since the stored baseline, without building."""
    from mfe_build.manifest.models import Manifest
    from mfe_build.orchestrator import load_baseline, pending_changes
    from mfe_build.revision import GitRevisionControl

    settings = _settings(root, mode)

    async def _load() -> Manifest:
        if settings.mode.is_remote:
            import httpx

            from mfe_build.orchestrator import resolve_baseline_url
            from mfe_build.project import load_project_config

            project = load_project_config(settings.root_dir / settings.project_config)
            url = resolve_baseline_url(settings, project)
            async with httpx.AsyncClient() as client:
                return await load_baseline(settings, client, url)
        return await load_baseline(settings, None, None)

    try:
        manifest = asyncio.run(_load())
        found = pending_changes(
            settings, GitRevisionControl(settings.root_dir), manifest.commit_hash
        )
    except MfeBuildError as e:
        console.print(f"[red]Failed to resolve changes: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "baseline": manifest.commit_hash,
            "changes": [{"status": c.status.value, "path": c.path} for c in found],
        }
        console.print(json.dumps(output, indent=2))
        return

    if not found:
        console.print("[green]No source changes[/green]")
        return
    console.print(
        f"[bold]{len(found)} change(s) since {manifest.commit_hash or '(no baseline)'}:[/bold]"
    )
    for change in found:
        console.print(f"  {change.status.value}  {change.path}", markup=False)


def _print_summary(summary: RunSummary) -> None:
    if summary.is_noop:
        console.print("[green]✓ Up to date, nothing to build[/green]")
        return
    console.print(f"[green]✓ Build complete at revision {summary.revision}[/green]")
    console.print(f"  Changes:         {len(summary.changes)}")
    console.print(f"  Modules built:   {len(summary.built)}")
    for name in summary.built:
        console.print(f"    {name}", markup=False)
    console.print(f"  Vendors built:   {len(summary.vendors_built)}")
    for name in summary.vendors_built:
        console.print(f"    {name}", markup=False)
    console.print(f"  Evicted:         {len(summary.evicted)}")
    console.print(f"  Container:       {'rebuilt' if summary.container_rebuilt else 'unchanged'}")
    console.print(f"  HTML written:    {summary.html_written}")


@app.command()
def build(
    root: RootOption = None,
    mode: ModeOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Run an incremental build."""
    from mfe_build.orchestrator import run

    settings = _settings(root, mode)
    try:
        if not json_output:
            console.print(
                f"[blue]Building {settings.root_dir} ({settings.mode.value} mode)...[/blue]"
            )
        summary = asyncio.run(run(settings))
    except MfeBuildError as e:
        console.print(f"[red]Build failed ({e.code}): {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        output = {
            "revision": summary.revision,
            "changes": len(summary.changes),
            "built": summary.built,
            "vendors_built": summary.vendors_built,
            "evicted": summary.evicted,
            "container_rebuilt": summary.container_rebuilt,
            "html_written": summary.html_written,
        }
        console.print(json.dumps(output, indent=2))
    else:
        _print_summary(summary)


if __name__ == "__main__":
    app()
