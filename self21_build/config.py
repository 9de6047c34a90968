"""Configuration settings for self21_build.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from self21_build.errors import InvalidOptionsError
from self21_build.types import DEFAULT_PLATFORM, BuildOptions, parse_platform_spec

DEFAULT_REPO_URL = "https://gitlab.com/HttpAnimations/self21.git"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the SELF21_ prefix.
    The image name, tag and branch also honour the bare IMAGE_NAME,
    IMAGE_TAG and BRANCH variables. CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="SELF21_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Image
    image_name: str = Field(
        default="self21",
        validation_alias=AliasChoices("SELF21_IMAGE_NAME", "IMAGE_NAME"),
        description="Local image name",
    )
    image_tag: str = Field(
        default="latest",
        validation_alias=AliasChoices("SELF21_IMAGE_TAG", "IMAGE_TAG"),
        description="Image tag, also passed as the VERSION build arg",
    )
    registry: str | None = Field(
        default=None,
        description="Registry path for qualified tags and pushes",
    )
    platform: str = Field(
        default=DEFAULT_PLATFORM,
        description="Comma-separated target platforms",
    )
    dockerfile: Path | None = Field(
        default=None,
        description="Dockerfile to build with (uses the checkout's if not set)",
    )

    # Source
    repo_url: str = Field(
        default=DEFAULT_REPO_URL,
        description="Upstream git repository",
    )
    branch: str = Field(
        default="master",
        validation_alias=AliasChoices("SELF21_BRANCH", "BRANCH"),
        description="Upstream branch to build",
    )
    source_dir: Path = Field(
        default=Path("self21-source"),
        description="Local checkout directory",
    )

    # Operational
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    lock_timeout: float = Field(
        default=300.0,
        ge=0,
        description="Seconds to wait for another run's checkout lock",
    )
    server_port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Port the media server listens on, used in run instructions",
    )


def get_settings() -> Settings:
    """Get the application settings.

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


def resolve_options(
    settings: Settings,
    *,
    image_name: str | None = None,
    image_tag: str | None = None,
    branch: str | None = None,
    push: bool = False,
    registry: str | None = None,
    platform: str | None = None,
    no_cache: bool = False,
    clean: bool = False,
    repo_url: str | None = None,
    source_dir: Path | None = None,
    dockerfile: Path | None = None,
) -> BuildOptions:
    """Merge CLI overrides onto settings and validate the result.

    None means "not given on the command line" and falls back to settings.

    Raises:
        InvalidOptionsError: If a required value resolves to empty.
    """
    name = image_name if image_name is not None else settings.image_name
    tag = image_tag if image_tag is not None else settings.image_tag
    ref = branch if branch is not None else settings.branch
    platforms = parse_platform_spec(
        platform if platform is not None else settings.platform
    )
    effective_registry = registry if registry is not None else settings.registry

    if not name.strip():
        raise InvalidOptionsError("image name must not be empty")
    if not tag.strip():
        raise InvalidOptionsError("image tag must not be empty")
    if not ref.strip():
        raise InvalidOptionsError("branch must not be empty")
    if not platforms:
        raise InvalidOptionsError("at least one platform is required")

    return BuildOptions(
        image_name=name.strip(),
        image_tag=tag.strip(),
        branch=ref.strip(),
        push=push,
        registry=(effective_registry or "").strip().rstrip("/") or None,
        platforms=platforms,
        no_cache=no_cache,
        clean=clean,
        repo_url=repo_url if repo_url is not None else settings.repo_url,
        source_dir=source_dir if source_dir is not None else settings.source_dir,
        dockerfile=dockerfile if dockerfile is not None else settings.dockerfile,
    )


__all__ = [
    "DEFAULT_REPO_URL",
    "Settings",
    "get_settings",
    "print_settings_json",
    "resolve_options",
]
