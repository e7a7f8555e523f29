"""Pipeline facade: wires adapters, engine, agent and registry together.

All external services are constructor-injected; nothing here reaches for a
global client.  ``Pipeline.from_settings`` builds the production wiring
(Docker, OpenAI, GitHub) from ``HarborConfig``.
"""

from __future__ import annotations

import logging
import random
from typing import Any

from harborline.adapters.base import (
    AgentExecutor,
    CacheBackend,
    ContainerPlatform,
    TrackerFactory,
)
from harborline.config import HarborConfig
from harborline.core.agent import AgentDeveloper
from harborline.core.engine import ExecutionEngine
from harborline.core.issues import IssueDeveloper
from harborline.core.registry import OperationRegistry, OperationSpec, ParamKind, ParamSpec
from harborline.core.run_log import RunLog
from harborline.models.config import PipelineConfig

logger = logging.getLogger(__name__)


_SOURCE = ParamSpec(name="source", kind=ParamKind.SOURCE, help="Source directory to use.")


class Pipeline:
    """The Harborline pipeline: build, test, publish, develop, develop-issue.

    Parameters
    ----------
    platform, cache:
        Container platform and cache backend for the execution engine.
    agent_executor:
        Backend for the develop workflow.
    tracker_factory:
        Builds an authenticated issue tracker from a credential.
    config:
        Pipeline shape.  Defaults if not provided.
    """

    def __init__(
        self,
        platform: ContainerPlatform,
        cache: CacheBackend,
        agent_executor: AgentExecutor,
        tracker_factory: TrackerFactory,
        config: PipelineConfig | None = None,
        *,
        run_id: str | None = None,
        rng: random.Random | None = None,
        prompt: str | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.run_log = RunLog(run_id)
        self._platform = platform

        self.engine = ExecutionEngine(
            platform, cache, self.config, run_log=self.run_log, rng=rng
        )
        self.developer = AgentDeveloper(self.engine, agent_executor, prompt=prompt)
        self.issue_developer = IssueDeveloper(
            self.developer, tracker_factory, self.run_log
        )

        self.registry = OperationRegistry()
        self._register_operations()
        self.registry.validate()

    @property
    def run_id(self) -> str:
        return self.run_log.run_id

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def _register_operations(self) -> None:
        register = self.registry.register
        register(OperationSpec(
            name="build-env",
            handler=self.engine.build_env,
            params=(_SOURCE,),
            help="Build a ready-to-use development environment.",
        ))
        register(OperationSpec(
            name="build",
            handler=self.engine.build,
            params=(_SOURCE,),
            help="Build the application container.",
        ))
        register(OperationSpec(
            name="test",
            handler=self.engine.test,
            params=(_SOURCE,),
            help="Return the result of running unit tests.",
        ))
        register(OperationSpec(
            name="publish",
            handler=self.engine.publish,
            params=(_SOURCE,),
            help="Publish the application container after building and testing it.",
        ))
        register(OperationSpec(
            name="develop",
            handler=self.developer.develop,
            params=(
                ParamSpec(name="assignment", kind=ParamKind.STRING, help="Assignment to complete."),
                _SOURCE,
            ),
            help="A coding agent for developing new features.",
        ))
        register(OperationSpec(
            name="develop-issue",
            handler=self.issue_developer.develop_issue,
            params=(
                ParamSpec(
                    name="token", kind=ParamKind.SECRET,
                    help="GitHub token with permissions to write issues and contents.",
                ),
                ParamSpec(name="issue_id", kind=ParamKind.INTEGER, help="GitHub issue number."),
                ParamSpec(
                    name="repository_url", kind=ParamKind.STRING, help="GitHub repository url."
                ),
                _SOURCE,
            ),
            help="Develop with a GitHub issue as the assignment and open a pull request.",
        ))

    def run(self, operation: str, **params: Any) -> Any:
        """Invoke a registered operation by name."""
        return self.registry.invoke(operation, params)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release platform resources (scratch directories, etc.)."""
        close = getattr(self._platform, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> Pipeline:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Production wiring
    # ------------------------------------------------------------------

    @classmethod
    def from_settings(cls, settings: HarborConfig, **kwargs: Any) -> Pipeline:
        """Wire the Docker platform, OpenAI agent and GitHub tracker."""
        from harborline.adapters.docker import DockerCacheBackend, DockerPlatform
        from harborline.adapters.github import GitHubIssueTracker
        from harborline.adapters.llm import LLMAgentExecutor

        platform = DockerPlatform(
            docker_bin=settings.docker_bin, scratch_dir=settings.scratch_dir
        )
        cache = DockerCacheBackend(
            docker_bin=settings.docker_bin, prefix=settings.volume_prefix
        )
        executor = LLMAgentExecutor.from_settings(settings)

        def tracker_factory(token):
            return GitHubIssueTracker(
                token,
                api_url=settings.github_api_url,
                timeout=settings.github_timeout_seconds,
            )

        return cls(
            platform,
            cache,
            executor,
            tracker_factory,
            settings.pipeline_config(),
            **kwargs,
        )
