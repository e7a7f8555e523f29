"""Step trace models: one record per engine step transition."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class StepState(str, Enum):
    RUNNING = "running"
    PASSED = "passed"
    FAILED = "failed"


class StepRecord(BaseModel):
    """A single entry in a run's step trace.

    ``input_hash`` is stable for identical inputs, so replays of the same
    step over the same source are recognisable from the trace alone.
    """

    model_config = ConfigDict(frozen=True)

    run_id: str
    step: str
    state: StepState
    input_hash: str = ""
    output_hash: str = ""
    detail: str = ""
    depth: int = 0  # nesting level: publish -> test -> build-env
    timestamp_utc: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
