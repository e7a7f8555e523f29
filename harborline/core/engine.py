"""Execution engine: build-env, build, test, and publish.

Each operation is a sequential chain of blocking container steps.  Outputs
of one step are the inputs of the next, and every step is traced in the
RunLog.  Two hard orderings hold by construction:

- ``build-env`` completes before any command that needs dependencies.
- ``publish`` runs ``test`` to completion before it builds anything, and a
  failing test raises before the registry is ever contacted.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

from harborline.adapters.base import CacheBackend, Container, ContainerPlatform
from harborline.core.errors import (
    BuildError,
    ContainerPlatformError,
    EnvironmentBuildError,
    PublishError,
    TestFailure,
    UnknownOperation,
)
from harborline.core.run_log import RunLog
from harborline.models.artifacts import PipelineArtifact
from harborline.models.config import PipelineConfig
from harborline.models.environment import ExecResult
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)


class ExecutionEngine:
    """Runs pipeline steps against an injected container platform.

    Parameters
    ----------
    platform:
        Creates containers and executes commands.
    cache:
        Resolves named cache volumes.
    config:
        Images, commands and mount points.  Defaults if not provided.
    run_log:
        Step trace for this run.  A fresh one is created if not provided.
    rng:
        Source of the publish tag suffix.  Not cryptographic.
    """

    STEPS: tuple[str, ...] = ("build-env", "build", "test", "publish")

    def __init__(
        self,
        platform: ContainerPlatform,
        cache: CacheBackend,
        config: PipelineConfig | None = None,
        *,
        run_log: RunLog | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._platform = platform
        self._cache = cache
        self.config = config or PipelineConfig()
        self.run_log = run_log if run_log is not None else RunLog()
        self._rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def build_env(self, source: SourceTree) -> Container:
        """Node container with *source* at /src, the npm cache mounted, deps installed."""
        cfg = self.config
        inputs = {
            "source": source.digest,
            "image": cfg.base_image,
            "cache": cfg.cache_volume,
            "command": list(cfg.install_command),
        }
        with self.run_log.step("build-env", inputs) as step:
            volume = self._cache.cache_volume(cfg.cache_volume)
            container = (
                self._platform.container(cfg.base_image)
                .with_directory(cfg.source_mount, source)
                .with_mounted_cache(cfg.cache_mount, volume)
                .with_workdir(cfg.source_mount)
                .with_exec(cfg.install_command)
            )
            result = _last_result(container)
            if not result.ok:
                raise EnvironmentBuildError(
                    f"{_render(cfg.install_command)} exited with code {result.exit_code}",
                    result,
                )
            step.record(environment=container.environment.model_dump(mode="json"))
            return container

    def build(self, source: SourceTree) -> Container:
        """Build the app and wrap its output directory in a static web server."""
        cfg = self.config
        inputs = {
            "source": source.digest,
            "command": list(cfg.build_command),
            "output_dir": cfg.build_output_dir,
            "serve_image": cfg.serve_image,
        }
        with self.run_log.step("build", inputs) as step:
            built = self.build_env(source).with_exec(cfg.build_command)
            result = _last_result(built)
            if not result.ok:
                raise BuildError(
                    f"{_render(cfg.build_command)} exited with code {result.exit_code}",
                    result,
                )
            try:
                dist = built.directory(cfg.build_output_dir)
            except FileNotFoundError as exc:
                raise BuildError(
                    f"Build produced no {cfg.build_output_dir} directory", result
                ) from exc

            served = (
                self._platform.container(cfg.serve_image)
                .with_directory(cfg.serve_root, dist)
                .with_exposed_port(cfg.serve_port)
            )
            logger.info(
                "Built %d files into %s:%s (port %d)",
                len(dist), cfg.serve_image, cfg.serve_root, cfg.serve_port,
            )
            step.record(dist=dist.digest, detail=f"{len(dist)} files")
            return served

    def test(self, source: SourceTree) -> str:
        """Run the unit tests and return their stdout exactly as captured."""
        cfg = self.config
        inputs = {"source": source.digest, "command": list(cfg.test_command)}
        with self.run_log.step("test", inputs) as step:
            tested = self.build_env(source).with_exec(cfg.test_command)
            result = _last_result(tested)
            if not result.ok:
                raise TestFailure(
                    f"{_render(cfg.test_command)} exited with code {result.exit_code}",
                    result,
                )
            step.record(stdout=result.stdout)
            return result.stdout

    def publish(self, source: SourceTree) -> str:
        """Test, build, then push as ``<registry>/<app>-<suffix>``.

        The suffix is a single random draw; a colliding tag is not retried.
        """
        cfg = self.config
        inputs = {"source": source.digest, "prefix": cfg.publish_prefix}
        with self.run_log.step("publish", inputs) as step:
            self.test(source)
            container = self.build(source)
            address = f"{cfg.publish_prefix}{self._rng.randint(0, cfg.tag_suffix_max)}"
            logger.info("Publishing %s", address)
            try:
                reference = container.publish(address)
            except ContainerPlatformError as exc:
                raise PublishError(f"Registry rejected {address}: {exc}") from exc
            step.record(reference=reference, detail=reference)
            return reference

    # ------------------------------------------------------------------
    # Generic dispatch
    # ------------------------------------------------------------------

    def run(self, step: str, inputs: dict[str, Any]) -> PipelineArtifact:
        """Run a named step with ``{"source": SourceTree}`` and wrap the result."""
        handlers: dict[str, Callable[[SourceTree], PipelineArtifact]] = {
            "build-env": lambda s: PipelineArtifact.of_environment(self.build_env(s).environment),
            "build": lambda s: PipelineArtifact.of_environment(self.build(s).environment),
            "test": lambda s: PipelineArtifact.of_text(self.test(s)),
            "publish": lambda s: PipelineArtifact.of_image(self.publish(s)),
        }
        handler = handlers.get(step)
        if handler is None:
            raise UnknownOperation(
                f"Unknown step {step!r}. Known steps: {list(self.STEPS)}"
            )
        source = inputs.get("source")
        if not isinstance(source, SourceTree):
            raise TypeError(f"Step {step!r} requires a SourceTree under 'source'")
        artifact = handler(source)
        logger.info("%s [%s] produced %s", step, self.run_log.run_id, artifact.summary())
        return artifact


def _last_result(container: Container) -> ExecResult:
    result = container.last_result
    if result is None:
        raise ContainerPlatformError("Container reported no exec result")
    return result


def _render(argv: tuple[str, ...]) -> str:
    return "`" + " ".join(argv) + "`"
