"""``harborline test`` — run the unit tests and print their output."""

from __future__ import annotations

from pathlib import Path

import typer

from harborline.cli import _common
from harborline.cli._common import SOURCE_OPTION, TRACE_OPTION, load_source, reporting


def test_cmd(
    source: Path = SOURCE_OPTION,
    trace: bool = TRACE_OPTION,
) -> None:
    """Return the result of running unit tests."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        output = pipeline.run("test", source=tree)
        typer.echo(output, nl=not output.endswith("\n"))
