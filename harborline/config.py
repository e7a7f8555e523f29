"""Runtime configuration, env-driven.

Centralized settings using pydantic-settings.  Reads from a ``.env`` file
and ``HARBORLINE_*`` environment variables.  Pipeline shape (images,
commands, mount points) lives in ``harborline.models.config.PipelineConfig``
and is derived from these settings by ``pipeline_config()``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from harborline.models.config import PipelineConfig


class HarborConfig(BaseSettings):
    """Harborline settings with environment variable overrides.

    Examples
    --------
    Override via environment::

        export HARBORLINE_LOG_LEVEL=DEBUG
        export HARBORLINE_REGISTRY=registry.example.com
        export HARBORLINE_OPENAI_API_KEY=sk-...

    Or via .env file::

        HARBORLINE_APP_NAME=storefront
        HARBORLINE_AGENT_MAX_STEPS=80
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="HARBORLINE_",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    environment: str = "development"
    log_level: str = "INFO"

    # Publishing
    registry: str = "ttl.sh"
    app_name: str = "hello-dagger"

    # Container platform
    docker_bin: str = "docker"
    scratch_dir: Path | None = None  # per-run snapshots; system temp when unset
    volume_prefix: str = "harborline-"

    # Source snapshots; replaces the default exclude patterns when set
    source_exclude: list[str] | None = None

    # Agent executor
    agent_model: str = "gpt-4o"
    agent_max_steps: int = 50
    agent_timeout_seconds: float = 1800.0
    openai_api_key: SecretStr | None = None
    openai_base_url: str | None = None

    # Issue tracker
    github_api_url: str = "https://api.github.com"
    github_timeout_seconds: float = 30.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def pipeline_config(self) -> PipelineConfig:
        """The frozen pipeline shape, with registry and app name applied."""
        overrides: dict[str, object] = {"registry": self.registry, "app_name": self.app_name}
        if self.source_exclude is not None:
            overrides["source_exclude"] = tuple(self.source_exclude)
        return PipelineConfig(**overrides)


# Module-level singleton: ``from harborline.config import settings``
settings = HarborConfig()
