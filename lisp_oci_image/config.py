"""Configuration settings for lisp_oci_image.

Uses pydantic-settings for config parsing from environment variables
and defaults. Settings are resolved once per invocation and passed down
to the code that needs them.
"""

from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE_NAME = "cl-amazon-linux"


def _default_context_dir() -> Path:
    """Return the packaged build context holding the Dockerfile."""
    return Path(__file__).resolve().parent / "recipe"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the LISP_OCI_IMAGE_
    prefix. ``DOCKER_BUILDKIT`` and ``INSIDE_EMACS`` are read under their
    conventional, unprefixed names.
    """

    model_config = SettingsConfigDict(
        env_prefix="LISP_OCI_IMAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Engine
    docker_bin: str = Field(
        default="docker",
        description="Container build engine executable",
    )
    docker_buildkit: bool = Field(
        default=False,
        validation_alias="DOCKER_BUILDKIT",
        description="Use BuildKit for the build (exported as DOCKER_BUILDKIT)",
    )
    context_dir: Path = Field(
        default_factory=_default_context_dir,
        description="Build context directory containing the Dockerfile",
    )
    default_image_name: str = Field(
        default=DEFAULT_IMAGE_NAME,
        min_length=1,
        description="Image name used when -n/--name is not given",
    )

    # Host hints
    inside_emacs: str | None = Field(
        default=None,
        validation_alias="INSIDE_EMACS",
        description="Set by Emacs terminals; verbose builds may hang there",
    )

    # Timeouts (in seconds)
    build_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for docker build (no timeout if not set)",
    )
    query_timeout: int = Field(
        default=300,
        ge=1,
        description="Timeout for the in-image version query",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    @field_validator("docker_buildkit", mode="before")
    @classmethod
    def empty_buildkit_is_unset(cls, v: Any) -> Any:
        """Treat an empty DOCKER_BUILDKIT like an unset one."""
        if isinstance(v, str) and not v.strip():
            return False
        return v


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


__all__ = ["DEFAULT_IMAGE_NAME", "Settings", "get_settings"]
