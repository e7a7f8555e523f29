"""Pipeline shape configuration: images, mount points, and commands.

Defaults describe a Node.js single-page application served by nginx.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class PipelineConfig(BaseModel):
    """Frozen description of what each pipeline step runs and where."""

    model_config = ConfigDict(frozen=True)

    app_name: str = "hello-dagger"
    registry: str = "ttl.sh"
    # Upper bound (inclusive) of the random publish tag suffix
    tag_suffix_max: int = 10_000_000

    # Build environment
    base_image: str = "node:21-slim"
    source_mount: str = "/src"
    cache_volume: str = "node"
    cache_mount: str = "/root/.npm"
    install_command: tuple[str, ...] = ("npm", "install")

    # Build
    build_command: tuple[str, ...] = ("npm", "run", "build")
    build_output_dir: str = "./dist"
    serve_image: str = "nginx:1.25-alpine"
    serve_root: str = "/usr/share/nginx/html"
    serve_port: int = 80

    # Test
    test_command: tuple[str, ...] = ("npm", "run", "test:unit", "run")

    # Develop
    prompt_template: str = "develop_prompt.md"
    strip_directories: tuple[str, ...] = ("node_modules",)

    # Local source snapshots skip files and directories matching these names;
    # the snapshot is what a pull request commits
    source_exclude: tuple[str, ...] = (".git", "node_modules", "dist", ".env", ".env.*")

    @property
    def publish_prefix(self) -> str:
        """``<registry>/<app>-`` without the random suffix."""
        return f"{self.registry.rstrip('/')}/{self.app_name}-"
