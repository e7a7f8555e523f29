"""``harborline build-env`` and ``harborline build``.

``build-env`` prepares the Node environment (dependencies installed) and
reports it.  ``build`` builds the application and wraps the output
directory in the static web server image; ``--export`` writes the served
directory to disk.
"""

from __future__ import annotations

from pathlib import Path

import typer
from rich.panel import Panel

from harborline.cli import _common
from harborline.cli._common import SOURCE_OPTION, TRACE_OPTION, console, load_source, reporting


def build_env_cmd(
    source: Path = SOURCE_OPTION,
    trace: bool = TRACE_OPTION,
) -> None:
    """Build a ready-to-use development environment."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        container = pipeline.run("build-env", source=tree)
        env = container.environment
        console.print(
            Panel(
                "\n".join([
                    "[bold green]Environment ready.[/bold green]",
                    "",
                    f"[bold]Image:[/bold]   {env.image}",
                    f"[bold]Workdir:[/bold] {env.workdir}",
                    f"[bold]Caches:[/bold]  {', '.join(c.volume.name for c in env.caches) or '-'}",
                    f"[bold]Source:[/bold]  {tree.digest}",
                ]),
                title="[bold]build-env[/bold]",
                border_style="green",
            )
        )


def build_cmd(
    source: Path = SOURCE_OPTION,
    export: Path | None = typer.Option(
        None,
        "--export",
        "-o",
        file_okay=False,
        help="Write the served directory here.",
    ),
    trace: bool = TRACE_OPTION,
) -> None:
    """Build the application container."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        container = pipeline.run("build", source=tree)
        env = container.environment
        cfg = pipeline.config
        if export is not None:
            container.directory(cfg.serve_root).export(export)
            console.print(f"[dim]Exported {cfg.serve_root} to {export}[/dim]")
        console.print(
            Panel(
                "\n".join([
                    "[bold green]Build complete.[/bold green]",
                    "",
                    f"[bold]Image:[/bold] {env.image}",
                    f"[bold]Ports:[/bold] {', '.join(str(p) for p in env.exposed_ports) or '-'}",
                    f"[bold]Root:[/bold]  {cfg.serve_root}",
                ]),
                title="[bold]build[/bold]",
                border_style="green",
            )
        )
