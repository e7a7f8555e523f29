"""Adapter Protocols for the services the engine delegates to.

The engine never imports a concrete adapter.  Anything with the right
methods satisfies these Protocols, so tests plug in in-memory fakes and
production wires in the Docker, OpenAI and GitHub backends.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

from pydantic import SecretStr

from harborline.core.workspace import Workspace
from harborline.models.agent import AgentEnv
from harborline.models.environment import BuildEnvironment, CacheVolume, ExecResult
from harborline.models.source import SourceTree
from harborline.models.tracker import Issue, PullRequest


# ---------------------------------------------------------------------------
# Container platform
# ---------------------------------------------------------------------------


@runtime_checkable
class Container(Protocol):
    """An immutable container handle.  Every ``with_*`` returns a new one."""

    @property
    def environment(self) -> BuildEnvironment:
        """Description of the image, mounts, workdir and command history."""
        ...

    @property
    def last_result(self) -> ExecResult | None:
        """Result of the most recent ``with_exec``, if any."""
        ...

    def with_directory(self, path: str, tree: SourceTree) -> Container: ...

    def with_mounted_cache(self, path: str, volume: CacheVolume) -> Container: ...

    def with_workdir(self, path: str) -> Container: ...

    def with_exposed_port(self, port: int) -> Container: ...

    def with_exec(self, argv: Sequence[str]) -> Container:
        """Run *argv* and return the resulting container.

        A non-zero exit is reported through ``last_result``, not raised;
        only platform failures raise ``ContainerPlatformError``.
        """
        ...

    def directory(self, path: str) -> SourceTree:
        """Snapshot *path* (relative paths resolve against the workdir)."""
        ...

    def publish(self, address: str) -> str:
        """Push the container as an image and return its reference."""
        ...


@runtime_checkable
class ContainerPlatform(Protocol):
    def container(self, image: str) -> Container: ...


@runtime_checkable
class CacheBackend(Protocol):
    def cache_volume(self, name: str) -> CacheVolume:
        """Idempotent lookup-or-create of a named cache volume."""
        ...


# ---------------------------------------------------------------------------
# Agent executor
# ---------------------------------------------------------------------------


@runtime_checkable
class AgentExecutor(Protocol):
    def create_env(self, privileged: bool = False) -> AgentEnv: ...

    def run_llm(self, env: AgentEnv, prompt: str) -> AgentEnv:
        """Drive the agent until every declared output is produced.

        Raises ``AgentExecutionError`` on failure, cancellation, or when a
        step or wall-clock cap is exceeded.
        """
        ...

    def read_output(self, env: AgentEnv, slot: str) -> Workspace: ...


# ---------------------------------------------------------------------------
# Issue tracker
# ---------------------------------------------------------------------------


@runtime_checkable
class IssueTracker(Protocol):
    def read(self, repository_url: str, issue_id: int) -> Issue: ...

    def create_pull_request(
        self, repository_url: str, title: str, body: str, tree: SourceTree
    ) -> PullRequest: ...


# Builds an authenticated tracker from an opaque credential.
TrackerFactory = Callable[[SecretStr], IssueTracker]
