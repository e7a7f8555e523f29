"""Issue tracker records.  Both are owned by the remote tracker."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class Issue(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    body: str = ""
    url: str
    number: int = 0


class PullRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    number: int = 0
    branch: str = ""
