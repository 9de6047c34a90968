"""Precondition checks run before anything is cloned or built.

Missing tools fail fast so a run never leaves a half-updated checkout
behind for a build that could not have started.
"""

from __future__ import annotations

import logging

from self21_build.errors import MissingDependencyError
from self21_build.images.docker import ContainerEngine
from self21_build.types import BuildOptions

logger = logging.getLogger(__name__)


def check_engine(engine: ContainerEngine, options: BuildOptions) -> None:
    """Validate that the engine can serve the requested build path.

    Raises:
        MissingDependencyError: If docker is missing, or buildx is missing
            for a multi-platform build.
    """
    if not engine.is_available():
        raise MissingDependencyError(
            "docker", "Docker is not installed or not in PATH"
        )

    if options.is_multi_platform:
        if not engine.has_buildx():
            raise MissingDependencyError(
                "buildx", "Docker Buildx is required for multi-platform builds"
            )
        logger.debug("buildx available for %s", options.platform_spec)


__all__ = ["check_engine"]
