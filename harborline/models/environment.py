"""Build environment models: cache volumes, mounts, and exec results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class CacheVolume(BaseModel):
    """A named persistent cache, referenced by name only.

    ``handle`` is whatever the cache backend needs to mount it (for Docker,
    the volume name).  The engine never looks inside.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    handle: str = ""


class CacheMount(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    volume: CacheVolume


class DirectoryMount(BaseModel):
    """A SourceTree mounted at an absolute container path, by digest."""

    model_config = ConfigDict(frozen=True)

    path: str
    tree_digest: str


class ExecResult(BaseModel):
    """Captured outcome of one command execution inside a container."""

    model_config = ConfigDict(frozen=True)

    argv: tuple[str, ...]
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """stdout followed by stderr, for error reports."""
        if self.stdout and self.stderr:
            return f"{self.stdout.rstrip()}\n{self.stderr}"
        return self.stdout or self.stderr


class BuildEnvironment(BaseModel):
    """Reproducible description of a container's execution context.

    Two environments built from the same image, the same mounted tree
    digests, the same cache volume names, and the same command history are
    observably identical, modulo cache staleness.
    """

    model_config = ConfigDict(frozen=True)

    image: str
    directories: tuple[DirectoryMount, ...] = ()
    caches: tuple[CacheMount, ...] = ()
    workdir: str = "/"
    exposed_ports: tuple[int, ...] = ()
    executed: tuple[tuple[str, ...], ...] = ()

    def with_directory(self, path: str, tree_digest: str) -> BuildEnvironment:
        kept = tuple(d for d in self.directories if d.path != path)
        return self.model_copy(
            update={"directories": (*kept, DirectoryMount(path=path, tree_digest=tree_digest))}
        )

    def with_cache(self, path: str, volume: CacheVolume) -> BuildEnvironment:
        kept = tuple(c for c in self.caches if c.path != path)
        return self.model_copy(
            update={"caches": (*kept, CacheMount(path=path, volume=volume))}
        )

    def with_workdir(self, path: str) -> BuildEnvironment:
        return self.model_copy(update={"workdir": path})

    def with_exposed_port(self, port: int) -> BuildEnvironment:
        if port in self.exposed_ports:
            return self
        return self.model_copy(update={"exposed_ports": (*self.exposed_ports, port)})

    def with_executed(self, argv: tuple[str, ...]) -> BuildEnvironment:
        return self.model_copy(update={"executed": (*self.executed, argv)})
