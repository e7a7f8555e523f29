"""Shared CLI plumbing: pipeline construction, source loading, error reporting."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from harborline.config import HarborConfig, settings
from harborline.core.errors import CommandFailure, DevelopmentVerificationFailed, HarborlineError
from harborline.core.pipeline import Pipeline
from harborline.models.source import SourceTree
from harborline.monitor.renderer import TraceRenderer

console = Console()
err_console = Console(stderr=True)

SOURCE_OPTION = typer.Option(
    Path("."),
    "--source",
    "-s",
    exists=True,
    file_okay=False,
    dir_okay=True,
    help="Source directory to use.",
)

TRACE_OPTION = typer.Option(
    False,
    "--trace/--no-trace",
    help="Print the step trace when the command finishes.",
)


def configure_logging(level: str) -> None:
    """Route log records through Rich on stderr."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=False, show_path=False)],
        force=True,
    )


def build_pipeline(config: HarborConfig | None = None) -> Pipeline:
    """Production wiring.  Tests replace this to inject fakes."""
    return Pipeline.from_settings(config or settings)


def load_source(path: Path, pipeline: Pipeline) -> SourceTree:
    tree = SourceTree.from_path(path, exclude=pipeline.config.source_exclude)
    logging.getLogger(__name__).info(
        "Loaded %d files from %s (%s)", len(tree), path, tree.digest[:19]
    )
    return tree


@contextmanager
def reporting(pipeline: Pipeline, trace: bool = False) -> Iterator[None]:
    """Report pipeline failures as ``<kind>: <message>`` and exit 1."""
    try:
        yield
    except HarborlineError as exc:
        err_console.print(f"[bold red]{exc.kind}:[/bold red] {escape(str(exc))}")
        output = ""
        if isinstance(exc, CommandFailure):
            output = exc.output
        elif isinstance(exc, DevelopmentVerificationFailed):
            output = exc.output
        if output:
            err_console.print(escape(output.rstrip()), style="dim")
        raise typer.Exit(code=1)
    finally:
        if trace:
            TraceRenderer(console=err_console).print_trace(pipeline.run_log)
        pipeline.close()
