"""In-memory step trace for a single pipeline run.

Every engine step enters RUNNING and leaves as PASSED or FAILED, and each
transition is appended here with the step's input hash (and, on success,
its output hash).  The log lives only as long as the run.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from harborline.core.hasher import compute_input_hash, compute_output_hash
from harborline.models.steps import StepRecord, StepState

logger = logging.getLogger(__name__)


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"hl-{ts}-{uuid.uuid4().hex[:3]}"


class StepHandle:
    """Collects a step's outputs while it runs."""

    def __init__(self, step: str, input_hash: str) -> None:
        self.step = step
        self.input_hash = input_hash
        self.outputs: dict[str, Any] = {}

    def record(self, **outputs: Any) -> None:
        self.outputs.update(outputs)


class RunLog:
    """Append-only trace of step transitions for one run.

    Parameters
    ----------
    run_id:
        Identifier stamped on every record.  Generated if not provided.
    """

    def __init__(self, run_id: str | None = None) -> None:
        self.run_id = run_id or new_run_id()
        self._records: list[StepRecord] = []
        self._depth = 0

    @property
    def records(self) -> list[StepRecord]:
        return list(self._records)

    def append(self, record: StepRecord) -> StepRecord:
        self._records.append(record)
        return record

    @contextmanager
    def step(self, name: str, inputs: dict[str, Any]) -> Iterator[StepHandle]:
        """Trace one step: RUNNING on entry, PASSED or FAILED on exit.

        Exceptions are recorded and re-raised unchanged.
        """
        input_hash = compute_input_hash(name, inputs)
        handle = StepHandle(name, input_hash)
        depth = self._depth
        self.append(StepRecord(
            run_id=self.run_id, step=name, state=StepState.RUNNING,
            input_hash=input_hash, depth=depth,
        ))
        logger.info("%s [%s] started input_hash=%s", name, self.run_id, input_hash[:12])

        self._depth += 1
        try:
            yield handle
        except Exception as exc:
            kind = getattr(exc, "kind", type(exc).__name__)
            self.append(StepRecord(
                run_id=self.run_id, step=name, state=StepState.FAILED,
                input_hash=input_hash, detail=f"{kind}: {exc}", depth=depth,
            ))
            logger.error("%s [%s] failed: %s", name, self.run_id, exc)
            raise
        finally:
            self._depth -= 1

        output_hash = compute_output_hash(name, handle.outputs)
        self.append(StepRecord(
            run_id=self.run_id, step=name, state=StepState.PASSED,
            input_hash=input_hash, output_hash=output_hash,
            detail=str(handle.outputs.get("detail", "")), depth=depth,
        ))
        logger.info("%s [%s] passed output_hash=%s", name, self.run_id, output_hash[:12])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def completed_steps(self) -> list[str]:
        """Names of steps that PASSED, in completion order."""
        return [r.step for r in self._records if r.state == StepState.PASSED]

    def failed_steps(self) -> list[str]:
        return [r.step for r in self._records if r.state == StepState.FAILED]

    def input_hashes(self, step: str) -> list[str]:
        return [
            r.input_hash for r in self._records
            if r.step == step and r.state == StepState.RUNNING
        ]

    def __len__(self) -> int:
        return len(self._records)
