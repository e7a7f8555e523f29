"""Shared test fixtures for Harborline.

The fakes here satisfy the adapter Protocols entirely in memory: commands
are scripted by argv, publishes are recorded, and the agent and issue
tracker return canned results.  Every fake records its calls so tests can
assert on ordering.
"""

from __future__ import annotations

import posixpath
import random
from collections.abc import Callable, Sequence
from typing import Any

import pytest
from pydantic import SecretStr

from harborline.core.errors import ContainerPlatformError
from harborline.core.pipeline import Pipeline
from harborline.core.workspace import Workspace
from harborline.models.agent import AgentEnv
from harborline.models.environment import BuildEnvironment, CacheVolume, ExecResult
from harborline.models.source import SourceTree
from harborline.models.tracker import Issue, PullRequest


# ---------------------------------------------------------------------------
# Container platform fakes
# ---------------------------------------------------------------------------


class ScriptedCommand:
    """What a fake exec of one argv does: exit code, stdout, and file writes."""

    def __init__(
        self,
        exit_code: int = 0,
        stdout: str = "",
        stderr: str = "",
        writes: dict[str, dict[str, str]] | None = None,
    ) -> None:
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.writes = writes or {}


class FakeContainer:
    def __init__(
        self,
        platform: FakePlatform,
        environment: BuildEnvironment,
        mounts: dict[str, SourceTree] | None = None,
        last_result: ExecResult | None = None,
    ) -> None:
        self._platform = platform
        self._env = environment
        self.mounts = dict(mounts or {})
        self._last_result = last_result

    @property
    def environment(self) -> BuildEnvironment:
        return self._env

    @property
    def last_result(self) -> ExecResult | None:
        return self._last_result

    def _derive(self, environment=None, mounts=None, last_result=None) -> FakeContainer:
        return FakeContainer(
            self._platform,
            environment or self._env,
            self.mounts if mounts is None else mounts,
            last_result or self._last_result,
        )

    def with_directory(self, path: str, tree: SourceTree) -> FakeContainer:
        return self._derive(
            environment=self._env.with_directory(path, tree.digest),
            mounts={**self.mounts, path: tree},
        )

    def with_mounted_cache(self, path: str, volume: CacheVolume) -> FakeContainer:
        return self._derive(environment=self._env.with_cache(path, volume))

    def with_workdir(self, path: str) -> FakeContainer:
        return self._derive(environment=self._env.with_workdir(path))

    def with_exposed_port(self, port: int) -> FakeContainer:
        return self._derive(environment=self._env.with_exposed_port(port))

    def with_exec(self, argv: Sequence[str]) -> FakeContainer:
        argv = tuple(argv)
        self._platform.calls.append(("exec", self._env.image, argv))
        script = self._platform.scripts.get(argv, ScriptedCommand())
        mounts = dict(self.mounts)
        for mount_path, files in script.writes.items():
            tree = mounts.get(mount_path, SourceTree.empty())
            for rel, content in files.items():
                tree = tree.with_file(rel, content)
            mounts[mount_path] = tree
        result = ExecResult(
            argv=argv,
            stdout=script.stdout,
            stderr=script.stderr,
            exit_code=script.exit_code,
        )
        return self._derive(
            environment=self._env.with_executed(argv),
            mounts=mounts,
            last_result=result,
        )

    def directory(self, path: str) -> SourceTree:
        target = posixpath.normpath(posixpath.join(self._env.workdir, path))
        for mount, tree in sorted(self.mounts.items(), key=lambda kv: -len(kv[0])):
            if target == mount:
                return tree
            if target.startswith(mount.rstrip("/") + "/"):
                return tree.directory(posixpath.relpath(target, mount))
        raise FileNotFoundError(target)

    def publish(self, address: str) -> str:
        self._platform.calls.append(("publish", self._env.image, (address,)))
        if self._platform.reject_push:
            raise ContainerPlatformError(f"denied: push to {address} rejected")
        self._platform.published.append((address, self))
        return address


class FakePlatform:
    """In-memory ContainerPlatform with scripted commands."""

    def __init__(self) -> None:
        self.scripts: dict[tuple[str, ...], ScriptedCommand] = {}
        self.calls: list[tuple[str, str, tuple[str, ...]]] = []
        self.published: list[tuple[str, FakeContainer]] = []
        self.reject_push = False
        self.closed = False

    def on(self, argv: Sequence[str], **kwargs: Any) -> FakePlatform:
        self.scripts[tuple(argv)] = ScriptedCommand(**kwargs)
        return self

    def container(self, image: str) -> FakeContainer:
        self.calls.append(("container", image, ()))
        return FakeContainer(self, BuildEnvironment(image=image))

    def execs(self) -> list[tuple[str, ...]]:
        return [argv for kind, _, argv in self.calls if kind == "exec"]

    def close(self) -> None:
        self.closed = True


class FakeCacheBackend:
    def __init__(self) -> None:
        self.lookups: list[str] = []

    def cache_volume(self, name: str) -> CacheVolume:
        self.lookups.append(name)
        return CacheVolume(name=name, handle=f"fake-{name}")


# ---------------------------------------------------------------------------
# Agent and tracker fakes
# ---------------------------------------------------------------------------


class FakeAgentExecutor:
    """Applies ``edit`` to the first workspace input and submits it."""

    def __init__(
        self,
        edit: Callable[[SourceTree], SourceTree] | None = None,
        error: Exception | None = None,
        produce_outputs: bool = True,
    ) -> None:
        self.edit = edit or (lambda tree: tree.with_file("src/feature.ts", "export const done = true\n"))
        self.error = error
        self.produce_outputs = produce_outputs
        self.runs: list[tuple[AgentEnv, str]] = []
        self.created: list[bool] = []

    def create_env(self, privileged: bool = False) -> AgentEnv:
        self.created.append(privileged)
        return AgentEnv(privileged=privileged)

    def run_llm(self, env: AgentEnv, prompt: str) -> AgentEnv:
        self.runs.append((env, prompt))
        if self.error is not None:
            raise self.error
        if not self.produce_outputs:
            return env
        tree = self.edit(env.workspace_inputs[0].tree)
        for name in env.output_names:
            env = env.with_output(name, tree)
        return env

    def read_output(self, env: AgentEnv, slot: str) -> Workspace:
        return Workspace(env.outputs[slot])


class FakeTracker:
    def __init__(self, issue: Issue | None = None, read_error: Exception | None = None) -> None:
        self.issue = issue or Issue(
            title="Add a dark mode toggle",
            body="Add a toggle in the header that switches the theme.",
            url="https://github.com/acme/storefront/issues/42",
            number=42,
        )
        self.read_error = read_error
        self.reads: list[tuple[str, int]] = []
        self.pull_requests: list[tuple[str, str, str, SourceTree]] = []

    def read(self, repository_url: str, issue_id: int) -> Issue:
        self.reads.append((repository_url, issue_id))
        if self.read_error is not None:
            raise self.read_error
        return self.issue

    def create_pull_request(
        self, repository_url: str, title: str, body: str, tree: SourceTree
    ) -> PullRequest:
        self.pull_requests.append((repository_url, title, body, tree))
        return PullRequest(
            url="https://github.com/acme/storefront/pull/43",
            number=43,
            branch="harborline/add-a-dark-mode-toggle-0000",
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def node_project() -> SourceTree:
    """A minimal Node.js project whose tests always pass."""
    return SourceTree.from_mapping({
        "package.json": (
            '{"name": "hello-dagger", "scripts": {"build": "vite build", '
            '"test:unit": "vitest"}}\n'
        ),
        "index.html": "<div id=app></div>\n",
        "src/main.ts": "import './app'\n",
        "src/components/__tests__/HelloWorld.spec.ts": "it('works', () => {})\n",
    })


@pytest.fixture
def platform() -> FakePlatform:
    """A FakePlatform scripted for a healthy Node project."""
    fake = FakePlatform()
    fake.on(
        ["npm", "install"],
        stdout="added 120 packages\n",
        writes={"/src": {"node_modules/vue/package.json": '{"name": "vue"}'}},
    )
    fake.on(
        ["npm", "run", "build"],
        stdout="vite build complete\n",
        writes={"/src": {"dist/index.html": "<html></html>", "dist/assets/app.js": "x()"}},
    )
    fake.on(["npm", "run", "test:unit", "run"], stdout="3 passed")
    return fake


@pytest.fixture
def cache() -> FakeCacheBackend:
    return FakeCacheBackend()


@pytest.fixture
def make_platform() -> Callable[[], FakePlatform]:
    """Factory fixture: an unscripted FakePlatform."""
    return FakePlatform


@pytest.fixture
def make_executor() -> Callable[..., FakeAgentExecutor]:
    """Factory fixture: FakeAgentExecutor(edit=..., error=..., produce_outputs=...)."""
    return FakeAgentExecutor


@pytest.fixture
def make_tracker() -> Callable[..., FakeTracker]:
    """Factory fixture: FakeTracker(issue=..., read_error=...)."""
    return FakeTracker


@pytest.fixture
def executor() -> FakeAgentExecutor:
    return FakeAgentExecutor()


@pytest.fixture
def tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def token() -> SecretStr:
    return SecretStr("ghp_supersecretvalue1234567890")


@pytest.fixture
def make_pipeline(
    platform: FakePlatform,
    cache: FakeCacheBackend,
    executor: FakeAgentExecutor,
    tracker: FakeTracker,
) -> Callable[..., Pipeline]:
    """Factory fixture: a Pipeline wired to the fakes, overridable per test."""

    def _factory(**overrides: Any) -> Pipeline:
        tracker_obj = overrides.pop("tracker", tracker)
        kwargs: dict[str, Any] = {
            "platform": platform,
            "cache": cache,
            "agent_executor": executor,
            "tracker_factory": lambda secret: tracker_obj,
            "rng": random.Random(1234),
            "prompt": "Complete the assignment.",
            "run_id": "hl-test-run-001",
        }
        kwargs.update(overrides)
        return Pipeline(**kwargs)

    return _factory


@pytest.fixture
def pipeline(make_pipeline: Callable[..., Pipeline]) -> Pipeline:
    """A ready Pipeline over the default fakes."""
    return make_pipeline()
