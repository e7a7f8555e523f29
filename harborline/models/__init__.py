"""Harborline data models — all Pydantic v2, all frozen (immutable)."""

from harborline.models.agent import (
    VALID_SESSION_TRANSITIONS,
    AgentEnv,
    SessionState,
    SlotDeclaration,
)
from harborline.models.artifacts import ArtifactKind, ImageRef, PipelineArtifact
from harborline.models.config import PipelineConfig
from harborline.models.environment import (
    BuildEnvironment,
    CacheMount,
    CacheVolume,
    DirectoryMount,
    ExecResult,
)
from harborline.models.source import FileEntry, SourceTree
from harborline.models.steps import StepRecord, StepState
from harborline.models.tracker import Issue, PullRequest

__all__ = [
    # source
    "FileEntry",
    "SourceTree",
    # environment
    "BuildEnvironment",
    "CacheMount",
    "CacheVolume",
    "DirectoryMount",
    "ExecResult",
    # artifacts
    "ArtifactKind",
    "ImageRef",
    "PipelineArtifact",
    # agent
    "AgentEnv",
    "SessionState",
    "SlotDeclaration",
    "VALID_SESSION_TRANSITIONS",
    # tracker
    "Issue",
    "PullRequest",
    # steps
    "StepRecord",
    "StepState",
    # config
    "PipelineConfig",
]
