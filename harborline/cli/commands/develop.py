"""``harborline develop`` and ``harborline develop-issue``.

``develop`` hands an assignment to the coding agent and writes the
verified result to ``--output``.  ``develop-issue`` reads a GitHub issue,
develops it, and opens a pull request, printing its url.
"""

from __future__ import annotations

from pathlib import Path

import typer
from pydantic import SecretStr
from rich.panel import Panel

from harborline.cli import _common
from harborline.cli._common import SOURCE_OPTION, TRACE_OPTION, console, load_source, reporting


def develop_cmd(
    assignment: str = typer.Argument(..., help="Assignment to complete."),
    source: Path = SOURCE_OPTION,
    output: Path = typer.Option(
        Path("harborline-develop"),
        "--output",
        "-o",
        file_okay=False,
        help="Directory to write the developed source into.",
    ),
    trace: bool = TRACE_OPTION,
) -> None:
    """A coding agent for developing new features."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        developed = pipeline.run("develop", assignment=assignment, source=tree)
        developed.export(output)
        console.print(
            Panel(
                "\n".join([
                    "[bold green]Assignment complete and verified.[/bold green]",
                    "",
                    f"[bold]Files:[/bold]  {len(developed)}",
                    f"[bold]Digest:[/bold] {developed.digest}",
                    f"[bold]Output:[/bold] {output}",
                ]),
                title="[bold]develop[/bold]",
                border_style="green",
            )
        )


def develop_issue_cmd(
    github_token: str = typer.Option(
        ...,
        "--github-token",
        envvar="GITHUB_TOKEN",
        show_envvar=True,
        hide_input=True,
        help="GitHub token with permissions to write issues and contents.",
    ),
    issue: int = typer.Option(..., "--issue", "-i", help="GitHub issue number."),
    repository: str = typer.Option(..., "--repository", "-r", help="GitHub repository url."),
    source: Path = SOURCE_OPTION,
    trace: bool = TRACE_OPTION,
) -> None:
    """Develop with a GitHub issue as the assignment and open a pull request."""
    pipeline = _common.build_pipeline()
    with reporting(pipeline, trace):
        tree = load_source(source, pipeline)
        url = pipeline.run(
            "develop-issue",
            token=SecretStr(github_token),
            issue_id=issue,
            repository_url=repository,
            source=tree,
        )
        typer.echo(url)
