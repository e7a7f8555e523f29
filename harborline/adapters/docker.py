"""Docker CLI container platform and cache backend.

Containers are immutable handles.  Mounted directories live in per-run
scratch directories on the host and are bind-mounted into each
``docker run --rm``; every exec works on a fresh copy, so an earlier
handle never observes a later exec's writes.  Cache volumes are named
Docker volumes shared across runs.

Only mounted directories carry state between execs: writes elsewhere in
the container filesystem are discarded with the container.
"""

from __future__ import annotations

import logging
import posixpath
import re
import shutil
import subprocess
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from harborline.core.errors import ContainerPlatformError
from harborline.models.environment import BuildEnvironment, CacheVolume, ExecResult
from harborline.models.source import SourceTree

logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]

_DIGEST_RE = re.compile(r"digest:\s*(sha256:[0-9a-f]{64})")


class DockerPlatform:
    """Runs containers through the ``docker`` command-line client.

    Parameters
    ----------
    docker_bin:
        Name or path of the docker executable.
    scratch_dir:
        Parent for per-run snapshot directories.  System temp if None.
    runner:
        ``subprocess.run``-compatible callable (injectable for tests).
    """

    def __init__(
        self,
        docker_bin: str = "docker",
        scratch_dir: Path | None = None,
        *,
        runner: Runner = subprocess.run,
    ) -> None:
        self.docker_bin = docker_bin
        self._scratch_parent = scratch_dir
        self._runner = runner
        self._scratch: list[Path] = []

    def container(self, image: str) -> DockerContainer:
        return DockerContainer(self, BuildEnvironment(image=image))

    # ------------------------------------------------------------------
    # Helpers used by containers
    # ------------------------------------------------------------------

    def new_scratch(self, label: str) -> Path:
        if self._scratch_parent is not None:
            Path(self._scratch_parent).mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=f"harborline-{label}-", dir=self._scratch_parent))
        self._scratch.append(path)
        return path

    def docker(self, *args: str) -> subprocess.CompletedProcess[str]:
        """Run ``docker <args>``, capturing text output.

        Raises ``ContainerPlatformError`` if the client cannot be started.
        """
        argv = [self.docker_bin, *args]
        logger.debug("exec %s", " ".join(argv))
        try:
            return self._runner(argv, capture_output=True, text=True, check=False)
        except OSError as exc:
            raise ContainerPlatformError(
                f"Could not run {self.docker_bin!r}: {exc}"
            ) from exc

    def close(self) -> None:
        """Remove every scratch directory created by this platform."""
        for path in self._scratch:
            shutil.rmtree(path, ignore_errors=True)
        self._scratch.clear()

    def __enter__(self) -> DockerPlatform:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class DockerContainer:
    """Immutable container handle backed by the Docker CLI."""

    def __init__(
        self,
        platform: DockerPlatform,
        environment: BuildEnvironment,
        mounts: dict[str, Path] | None = None,
        last_result: ExecResult | None = None,
    ) -> None:
        self._platform = platform
        self._env = environment
        self._mounts: dict[str, Path] = dict(mounts or {})
        self._last_result = last_result

    @property
    def environment(self) -> BuildEnvironment:
        return self._env

    @property
    def last_result(self) -> ExecResult | None:
        return self._last_result

    def _derive(self, **changes: Any) -> DockerContainer:
        return DockerContainer(
            self._platform,
            changes.get("environment", self._env),
            changes.get("mounts", self._mounts),
            changes.get("last_result", self._last_result),
        )

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def with_directory(self, path: str, tree: SourceTree) -> DockerContainer:
        host = self._platform.new_scratch("dir")
        tree.export(host)
        return self._derive(
            environment=self._env.with_directory(path, tree.digest),
            mounts={**self._mounts, path: host},
        )

    def with_mounted_cache(self, path: str, volume: CacheVolume) -> DockerContainer:
        return self._derive(environment=self._env.with_cache(path, volume))

    def with_workdir(self, path: str) -> DockerContainer:
        return self._derive(environment=self._env.with_workdir(path))

    def with_exposed_port(self, port: int) -> DockerContainer:
        return self._derive(environment=self._env.with_exposed_port(port))

    def with_exec(self, argv: Sequence[str]) -> DockerContainer:
        argv = tuple(argv)
        # Copy-on-exec keeps earlier handles unchanged
        mounts: dict[str, Path] = {}
        for path, host in self._mounts.items():
            snapshot = self._platform.new_scratch("exec")
            shutil.copytree(host, snapshot, symlinks=True, dirs_exist_ok=True)
            mounts[path] = snapshot

        args = ["run", "--rm"]
        for path, host in mounts.items():
            args += ["-v", f"{host}:{path}"]
        for cache in self._env.caches:
            args += ["-v", f"{cache.volume.handle or cache.volume.name}:{cache.path}"]
        args += ["-w", self._env.workdir, self._env.image, *argv]

        completed = self._platform.docker(*args)
        result = ExecResult(
            argv=argv,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            exit_code=completed.returncode,
        )
        logger.info("%s exited with code %d", " ".join(argv), result.exit_code)
        return self._derive(
            environment=self._env.with_executed(argv),
            mounts=mounts,
            last_result=result,
        )

    # ------------------------------------------------------------------
    # Outputs
    # ------------------------------------------------------------------

    def directory(self, path: str) -> SourceTree:
        target = posixpath.normpath(posixpath.join(self._env.workdir, path))
        best: str | None = None
        for mount in self._mounts:
            if target == mount or target.startswith(mount.rstrip("/") + "/"):
                if best is None or len(mount) > len(best):
                    best = mount
        if best is None:
            raise FileNotFoundError(f"{target} is not inside a mounted directory")
        relative = posixpath.relpath(target, best)
        host = self._mounts[best] / relative if relative != "." else self._mounts[best]
        if not host.is_dir():
            raise FileNotFoundError(f"No such directory in container: {target}")
        return SourceTree.from_path(host)

    def publish(self, address: str) -> str:
        """Bake mounted directories into an image, build it, and push it."""
        context = self._platform.new_scratch("image")
        lines = [f"FROM {self._env.image}"]
        if self._mounts:
            rootfs = context / "rootfs"
            for path, host in self._mounts.items():
                shutil.copytree(
                    host, rootfs / path.lstrip("/"), symlinks=True, dirs_exist_ok=True
                )
            lines.append("COPY rootfs/ /")
        if self._env.workdir != "/":
            lines.append(f"WORKDIR {self._env.workdir}")
        lines += [f"EXPOSE {port}" for port in self._env.exposed_ports]
        (context / "Dockerfile").write_text("\n".join(lines) + "\n", encoding="utf-8")

        built = self._platform.docker("build", "-t", address, str(context))
        if built.returncode != 0:
            raise ContainerPlatformError(
                f"docker build failed for {address}: {(built.stderr or built.stdout).strip()}"
            )
        pushed = self._platform.docker("push", address)
        if pushed.returncode != 0:
            raise ContainerPlatformError(
                f"docker push rejected {address}: {(pushed.stderr or pushed.stdout).strip()}"
            )
        match = _DIGEST_RE.search(pushed.stdout or "")
        if match:
            logger.info("Pushed %s (%s)", address, match.group(1))
        return address

    def __repr__(self) -> str:
        return f"<DockerContainer image={self._env.image!r} workdir={self._env.workdir!r}>"


class DockerCacheBackend:
    """Named Docker volumes as cache volumes.

    ``docker volume create`` is idempotent, so concurrent runs resolving the
    same name share one volume.
    """

    def __init__(
        self,
        docker_bin: str = "docker",
        prefix: str = "harborline-",
        *,
        runner: Runner = subprocess.run,
    ) -> None:
        self._platform = DockerPlatform(docker_bin, runner=runner)
        self._prefix = prefix
        self._volumes: dict[str, CacheVolume] = {}

    def cache_volume(self, name: str) -> CacheVolume:
        if name in self._volumes:
            return self._volumes[name]
        handle = f"{self._prefix}{name}"
        created = self._platform.docker("volume", "create", handle)
        if created.returncode != 0:
            raise ContainerPlatformError(
                f"Could not create cache volume {handle}: {(created.stderr or '').strip()}"
            )
        volume = CacheVolume(name=name, handle=handle)
        self._volumes[name] = volume
        return volume
