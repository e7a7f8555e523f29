"""End-to-end integration tests — every operation through the Pipeline facade.

The first group runs over the in-memory adapters.  The second wires the
real DockerPlatform and DockerCacheBackend to a runner that stands in for
the docker client and simulates npm inside the bind-mounted directories,
so mount handling, copy-on-exec and image assembly are all exercised.
"""

from __future__ import annotations

import random
import re
import subprocess
from pathlib import Path

import pytest

from harborline.adapters.docker import DockerCacheBackend, DockerPlatform
from harborline.core.errors import TestFailure
from harborline.core.pipeline import Pipeline
from harborline.models.source import SourceTree

pytestmark = pytest.mark.integration

PUBLISHED = re.compile(r"^ttl\.sh/hello-dagger-\d+$")


class TestFullPipeline:
    """Every operation, in the order a developer would use them."""

    def test_build_test_publish(self, pipeline, node_project):
        assert pipeline.run("test", source=node_project) == "3 passed"
        served = pipeline.run("build", source=node_project)
        assert served.environment.image == "nginx:1.25-alpine"
        reference = pipeline.run("publish", source=node_project)
        assert PUBLISHED.match(reference)

    def test_publish_is_deterministic_per_seed(self, make_pipeline, node_project):
        first = make_pipeline(rng=random.Random(5)).run("publish", source=node_project)
        second = make_pipeline(rng=random.Random(5)).run("publish", source=node_project)
        assert first == second

    def test_develop_then_publish(self, pipeline, node_project):
        developed = pipeline.run("develop", assignment="Add a footer", source=node_project)
        reference = pipeline.run("publish", source=developed)
        assert PUBLISHED.match(reference)
        assert pipeline.run_log.completed_steps()[-1] == "publish"

    def test_develop_issue(self, pipeline, tracker, token, node_project):
        url = pipeline.run(
            "develop-issue",
            token=token,
            issue_id=42,
            repository_url="https://github.com/acme/storefront",
            source=node_project,
        )
        assert url == "https://github.com/acme/storefront/pull/43"
        _, _, body, tree = tracker.pull_requests[0]
        assert body.endswith("\n\nCloses https://github.com/acme/storefront/issues/42")
        assert not tree.has_directory("node_modules")


# ---------------------------------------------------------------------------
# Docker platform with a simulated client
# ---------------------------------------------------------------------------


class SimulatedDocker:
    """Pretends to be the docker CLI; runs "npm" against the bind mounts."""

    def __init__(self, failing_tests: bool = False):
        self.failing_tests = failing_tests
        self.calls: list[list[str]] = []
        self.pushed: list[str] = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        command = argv[1]
        if command == "run":
            return self._run(argv)
        if command == "push":
            self.pushed.append(argv[2])
            return subprocess.CompletedProcess(
                argv, 0, stdout=f"latest: digest: sha256:{'b' * 64} size: 528\n", stderr=""
            )
        return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

    def _run(self, argv):
        workdir = Path(self._mounts(argv)["/src"])
        npm = argv[argv.index("npm"):]
        if npm == ["npm", "install"]:
            (workdir / "node_modules" / "vue").mkdir(parents=True, exist_ok=True)
            (workdir / "node_modules" / "vue" / "package.json").write_text("{}")
            return subprocess.CompletedProcess(argv, 0, stdout="added 1 package\n", stderr="")
        if npm == ["npm", "run", "build"]:
            if not (workdir / "node_modules").is_dir():
                return subprocess.CompletedProcess(argv, 1, stdout="", stderr="vite: not found")
            (workdir / "dist").mkdir(exist_ok=True)
            (workdir / "dist" / "index.html").write_text("<html>built</html>")
            return subprocess.CompletedProcess(argv, 0, stdout="built\n", stderr="")
        if npm == ["npm", "run", "test:unit", "run"]:
            if self.failing_tests:
                return subprocess.CompletedProcess(argv, 1, stdout="1 failed\n", stderr="")
            return subprocess.CompletedProcess(argv, 0, stdout=" ✓ 3 passed\n", stderr="")
        return subprocess.CompletedProcess(argv, 127, stdout="", stderr="unknown")

    @staticmethod
    def _mounts(argv):
        mounts = {}
        for i, arg in enumerate(argv):
            if arg == "-v":
                host, _, path = argv[i + 1].rpartition(":")
                mounts[path] = host
        return mounts


@pytest.fixture
def docker_pipeline(tmp_path, executor, tracker):
    def _factory(simulated: SimulatedDocker) -> Pipeline:
        return Pipeline(
            DockerPlatform(scratch_dir=tmp_path / "scratch", runner=simulated),
            DockerCacheBackend(runner=simulated),
            executor,
            lambda secret: tracker,
            rng=random.Random(3),
            prompt="Complete the assignment.",
        )

    return _factory


class TestDockerPipeline:
    def test_publish_through_docker(self, docker_pipeline, node_project, tmp_path):
        docker = SimulatedDocker()
        with docker_pipeline(docker) as pipeline:
            reference = pipeline.run("publish", source=node_project)
            assert PUBLISHED.match(reference)
            assert docker.pushed == [reference]

            build = [c for c in docker.calls if c[1] == "build"][0]
            context = Path(build[-1])
            assert (context / "rootfs/usr/share/nginx/html/index.html").read_text() == "<html>built</html>"
            assert "EXPOSE 80" in (context / "Dockerfile").read_text()

        # Scratch directories are gone once the pipeline is closed
        assert list((tmp_path / "scratch").iterdir()) == []

    def test_cache_volume_created_once_per_name(self, docker_pipeline, node_project):
        docker = SimulatedDocker()
        with docker_pipeline(docker) as pipeline:
            pipeline.run("publish", source=node_project)
        volumes = [c for c in docker.calls if c[1] == "volume"]
        assert volumes == [["docker", "volume", "create", "harborline-node"]]
        runs = [c for c in docker.calls if c[1] == "run"]
        assert all("harborline-node:/root/.npm" in c for c in runs)

    def test_test_output_verbatim(self, docker_pipeline, node_project):
        with docker_pipeline(SimulatedDocker()) as pipeline:
            assert pipeline.run("test", source=node_project) == " ✓ 3 passed\n"

    def test_failing_tests_never_push(self, docker_pipeline, node_project):
        docker = SimulatedDocker(failing_tests=True)
        with docker_pipeline(docker) as pipeline:
            with pytest.raises(TestFailure):
                pipeline.run("publish", source=node_project)
        assert docker.pushed == []
        assert [c for c in docker.calls if c[1] == "build"] == []

    def test_source_snapshot_from_disk(self, docker_pipeline, node_project, tmp_path):
        project = node_project.export(tmp_path / "project")
        tree = SourceTree.from_path(project, exclude=(".git", "node_modules"))
        with docker_pipeline(SimulatedDocker()) as pipeline:
            developed = pipeline.run("develop", assignment="Add a footer", source=tree)
        assert "src/feature.ts" in developed
        assert not developed.has_directory("node_modules")
