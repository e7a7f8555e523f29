"""Main Typer application — imports and registers all CLI commands.

Entry point: ``harborline`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import typer

from harborline.cli._common import configure_logging
from harborline.cli.commands.build import build_cmd, build_env_cmd
from harborline.cli.commands.checks import test_cmd
from harborline.cli.commands.develop import develop_cmd, develop_issue_cmd
from harborline.cli.commands.operations import operations_cmd
from harborline.cli.commands.publish import publish_cmd
from harborline.config import settings

app = typer.Typer(
    name="harborline",
    help="Harborline: build, test, publish and agent-develop Node.js web apps in containers.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option(
        settings.log_level,
        "--log-level",
        envvar="HARBORLINE_LOG_LEVEL",
        help="Logging level (DEBUG, INFO, WARNING, ERROR).",
    ),
) -> None:
    """Harborline pipeline operations."""
    configure_logging(log_level)


# Register subcommands
app.command(name="build-env", help="Build a ready-to-use development environment.")(build_env_cmd)
app.command(name="build", help="Build the application container.")(build_cmd)
app.command(name="test", help="Return the result of running unit tests.")(test_cmd)
app.command(name="publish", help="Publish the application container after building and testing it.")(publish_cmd)
app.command(name="develop", help="A coding agent for developing new features.")(develop_cmd)
app.command(
    name="develop-issue",
    help="Develop with a GitHub issue as the assignment and open a pull request.",
)(develop_issue_cmd)
app.command(name="operations", help="List registered pipeline operations.")(operations_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
