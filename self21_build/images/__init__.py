"""Image build module.

This module handles:
- Tag and build-argument derivation
- Container engine preflight checks
- Running builds, tags and pushes through the docker CLI
"""

from self21_build.images.docker import BuildRequest, ContainerEngine, DockerEngine

__all__ = ["BuildRequest", "ContainerEngine", "DockerEngine"]

# Access helpers via self21_build.images.tags and self21_build.images.preflight
