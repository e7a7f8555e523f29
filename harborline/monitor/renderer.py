"""Rich terminal renderer for a run's step trace.

Steps are listed in start order and indented by nesting depth, so
``publish`` shows its ``test`` and ``build`` sub-steps (and their
``build-env``) underneath it.

Color scheme
------------
- green  : PASSED
- red    : FAILED
- yellow : RUNNING (never finished)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from harborline.models.steps import StepRecord, StepState

if TYPE_CHECKING:
    from harborline.core.run_log import RunLog


_STATE_STYLES: dict[StepState, str] = {
    StepState.PASSED: "bold green",
    StepState.FAILED: "bold red",
    StepState.RUNNING: "bold yellow",
}

_STATE_ICONS: dict[StepState, str] = {
    StepState.PASSED: "[green]PASSED[/green]",
    StepState.FAILED: "[bold red]FAILED[/bold red]",
    StepState.RUNNING: "[yellow]RUNNING[/yellow]",
}


def pair_steps(records: list[StepRecord]) -> list[tuple[StepRecord, StepRecord | None]]:
    """Pair each RUNNING record with the record that ended it, in start order."""
    pairs: list[tuple[StepRecord, StepRecord | None]] = []
    open_steps: list[int] = []
    for record in records:
        if record.state == StepState.RUNNING:
            pairs.append((record, None))
            open_steps.append(len(pairs) - 1)
            continue
        # The innermost open step at the same depth is the one ending
        for idx in reversed(open_steps):
            started, _ = pairs[idx]
            if started.step == record.step and started.depth == record.depth:
                pairs[idx] = (started, record)
                open_steps.remove(idx)
                break
    return pairs


class TraceRenderer:
    """Renders a RunLog as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render(self, run_log: RunLog) -> Panel:
        table = self._build_step_table(run_log.records)
        passed = len(run_log.completed_steps())
        failed = len(run_log.failed_steps())
        summary = (
            f"[bold]Run:[/bold] {run_log.run_id}  |  "
            f"[bold]Passed:[/bold] {passed}  |  "
            f"[bold]Failed:[/bold] {'[red]' + str(failed) + '[/red]' if failed else '0'}"
        )
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]Harborline Steps[/bold]",
            border_style="red" if failed else "blue",
            padding=(1, 2),
        )

    def _build_step_table(self, records: list[StepRecord]) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Step", min_width=20)
        table.add_column("State", min_width=10, justify="center")
        table.add_column("Input", style="dim", width=14)
        table.add_column("Details", min_width=20, overflow="fold")

        for i, (started, ended) in enumerate(pair_steps(records)):
            state = ended.state if ended else StepState.RUNNING
            style = _STATE_STYLES[state]
            indent = "  " * started.depth
            details = (ended.detail if ended else "") or "-"
            table.add_row(
                str(i),
                f"{indent}[{style}]{started.step}[/{style}]",
                _STATE_ICONS[state],
                started.input_hash[:12],
                Text(details),
            )
        return table

    def print_trace(self, run_log: RunLog) -> None:
        self.console.print(self.render(run_log))
