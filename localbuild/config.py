"""Configuration settings for localbuild.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > artifacts file >
env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_db_url() -> str:
    """Return the default database URL (SQLite)."""
    db_path = Path.home() / ".local" / "share" / "localbuild" / "db.sqlite"
    return f"sqlite:///{db_path}"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the LOCALBUILD_
    prefix. CLI flags and the artifacts file can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="LOCALBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cluster
    kubeconfig: Path | None = Field(
        default=None,
        description="Path to kubeconfig (falls back to $KUBECONFIG, then ~/.kube/config)",
    )
    kube_context: str | None = Field(
        default=None,
        description="Kubernetes context to use instead of the kubeconfig current-context",
    )
    local_cluster: bool | None = Field(
        default=None,
        description="Force the local-cluster flag instead of detecting it from the context",
    )

    # Build behaviour
    push: bool | None = Field(
        default=None,
        description="Push images after build (unset: push unless the cluster is local)",
    )
    use_docker_cli: bool = Field(
        default=False,
        description="Build with the docker CLI instead of the Engine API",
    )
    use_buildkit: bool = Field(
        default=False,
        description="Build with the docker CLI and BuildKit enabled",
    )
    prune: bool = Field(
        default=True,
        description="Remove intermediate containers during builds",
    )
    docker_binary: str = Field(
        default="docker",
        description="docker executable used for CLI builds",
    )

    # Persistence and logging
    db_url: str = Field(
        default_factory=_default_db_url,
        description="Database connection URL for build history",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Timeouts (in seconds)
    build_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for CLI builds (unset: no timeout)",
    )

    def local_build_properties(self) -> dict[str, object]:
        """Return the build properties contributed by the environment.

        Returns:
            Mapping in the shape of the artifacts file ``build.local`` section.
        """
        properties: dict[str, object] = {
            "useDockerCLI": self.use_docker_cli,
            "useBuildkit": self.use_buildkit,
        }
        if self.push is not None:
            properties["push"] = self.push
        return properties


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
