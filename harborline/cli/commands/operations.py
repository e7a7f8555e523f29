"""``harborline operations`` — list the registered pipeline operations."""

from __future__ import annotations

from rich.table import Table

from harborline.cli import _common
from harborline.cli._common import console


def operations_cmd() -> None:
    """List registered operations and their parameters."""
    pipeline = _common.build_pipeline()
    try:
        table = Table(title="Pipeline Operations")
        table.add_column("Operation", style="cyan")
        table.add_column("Parameters")
        table.add_column("Description")
        for spec in pipeline.registry:
            params = ", ".join(f"{p.name}:{p.kind.value}" for p in spec.params)
            table.add_row(spec.name, params, spec.help)
        console.print(table)
    finally:
        pipeline.close()
