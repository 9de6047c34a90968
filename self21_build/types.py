"""Shared type definitions for self21_build.

This module contains the dataclasses passed between the pipeline steps,
kept separate from the subpackages to avoid circular imports.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

DEFAULT_PLATFORM = "linux/amd64"


class BuildPath(str, Enum):
    """Which builder the engine uses for a run."""

    STANDARD = "standard"
    MULTI_PLATFORM = "multi-platform"


def parse_platform_spec(spec: str) -> tuple[str, ...]:
    """Split a comma-separated platform spec into platform identifiers.

    Blank entries and surrounding whitespace are dropped, and duplicates
    are collapsed keeping the first occurrence.

    Args:
        spec: Platform spec such as ``linux/amd64,linux/arm64``.

    Returns:
        Tuple of platform identifiers (possibly empty).
    """
    platforms: list[str] = []
    for part in spec.split(","):
        name = part.strip()
        if name and name not in platforms:
            platforms.append(name)
    return tuple(platforms)


@dataclass(frozen=True)
class BuildOptions:
    """Resolved options for a single orchestrator run.

    Attributes:
        image_name: Local image name.
        image_tag: Requested tag, also passed as the VERSION build arg.
        branch: Upstream branch to build.
        push: Whether publishing was requested.
        registry: Registry path used for qualified tags and pushes.
        platforms: Target platforms; more than one selects buildx.
        no_cache: Build without the engine cache.
        clean: Remove the checkout after a successful run.
        repo_url: Upstream git repository.
        source_dir: Local checkout directory.
        dockerfile: Optional Dockerfile path passed to the engine.
    """

    image_name: str
    image_tag: str
    branch: str
    repo_url: str
    source_dir: Path
    push: bool = False
    registry: str | None = None
    platforms: tuple[str, ...] = (DEFAULT_PLATFORM,)
    no_cache: bool = False
    clean: bool = False
    dockerfile: Path | None = None

    @property
    def is_multi_platform(self) -> bool:
        return len(self.platforms) > 1

    @property
    def build_path(self) -> BuildPath:
        if self.is_multi_platform:
            return BuildPath.MULTI_PLATFORM
        return BuildPath.STANDARD

    @property
    def platform_spec(self) -> str:
        return ",".join(self.platforms)

    @property
    def should_push(self) -> bool:
        """Push only happens when a registry is configured."""
        return self.push and bool(self.registry)


@dataclass(frozen=True)
class Checkout:
    """A local working copy at the tip of a branch.

    Attributes:
        path: Checkout directory.
        branch: Branch checked out.
        commit: Short commit hash of HEAD.
    """

    path: Path
    branch: str
    commit: str


@dataclass
class BuildSummary:
    """Outcome of a successful run, rendered by the CLI."""

    image: str
    commit: str
    branch: str
    build_path: BuildPath
    platforms: list[str]
    build_time: str
    source_dir: str
    local_refs: list[str] = field(default_factory=list)
    registry_refs: list[str] = field(default_factory=list)
    pushed_refs: list[str] = field(default_factory=list)
    loaded_locally: bool = True
    source_removed: bool = False
    run_instructions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-serializable dictionary."""
        data = asdict(self)
        data["build_path"] = self.build_path.value
        return data


__all__ = [
    "DEFAULT_PLATFORM",
    "BuildOptions",
    "BuildPath",
    "BuildSummary",
    "Checkout",
    "parse_platform_spec",
]
