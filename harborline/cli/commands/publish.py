"""``harborline publish`` — test, build, and push the application image.

Tests always run first; a failing suite exits non-zero before anything is
built or pushed.  The image reference is printed on its own line for
scripting.
"""

from __future__ import annotations

from pathlib import Path

import typer

from harborline.cli import _common
from harborline.cli._common import SOURCE_OPTION, TRACE_OPTION, load_source, reporting


def publish_cmd(
    source: Path = SOURCE_OPTION,
    trace: bool = TRACE_OPTION,
) -> None:
    """Publish the application container after building and testing it."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        reference = pipeline.run("publish", source=tree)
        typer.echo(reference)
