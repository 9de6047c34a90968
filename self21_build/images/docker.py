"""Container engine integration.

This module handles:
- Composing `docker build` and `docker buildx build` commands
- Executing builds, tags and pushes with subprocess
- Translating command failures into build and push errors

The ``ContainerEngine`` protocol is what the pipeline depends on; the
docker CLI implementation lives in ``DockerEngine``.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Protocol

from self21_build.errors import ImageBuildError, PushError
from self21_build.process import CommandError, command_succeeds, run_command

logger = logging.getLogger(__name__)


@dataclass
class BuildRequest:
    """Everything the engine needs for one build invocation.

    Attributes:
        context: Build context directory (the checkout).
        tags: References applied by the build itself.
        build_args: Build-time arguments, in order.
        platforms: Target platforms.
        no_cache: Disable the build cache.
        dockerfile: Optional Dockerfile path.
        push: Multi-platform only; push instead of loading locally.
    """

    context: Path
    tags: list[str]
    build_args: dict[str, str] = field(default_factory=dict)
    platforms: list[str] = field(default_factory=list)
    no_cache: bool = False
    dockerfile: Path | None = None
    push: bool = False


class ContainerEngine(Protocol):
    """Container engine capability used by the pipeline."""

    def is_available(self) -> bool: ...

    def has_buildx(self) -> bool: ...

    def build(self, request: BuildRequest) -> None: ...

    def buildx_build(self, request: BuildRequest) -> None: ...

    def tag(self, source: str, target: str) -> None: ...

    def push(self, reference: str) -> None: ...


def _common_build_flags(request: BuildRequest) -> list[str]:
    flags: list[str] = []
    if request.no_cache:
        flags.append("--no-cache")
    if request.platforms:
        flags.extend(["--platform", ",".join(request.platforms)])
    for key, value in request.build_args.items():
        flags.extend(["--build-arg", f"{key}={value}"])
    for ref in request.tags:
        flags.extend(["-t", ref])
    if request.dockerfile is not None:
        flags.extend(["-f", str(request.dockerfile)])
    return flags


def compose_build_command(
    request: BuildRequest, executable: str = "docker"
) -> list[str]:
    """Compose a standard single-platform `docker build` command.

    Args:
        request: BuildRequest to render.
        executable: Container engine CLI.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [executable, "build", *_common_build_flags(request), str(request.context)]


def compose_buildx_command(
    request: BuildRequest, executable: str = "docker"
) -> list[str]:
    """Compose a multi-platform `docker buildx build` command.

    The result is pushed when ``request.push`` is set, otherwise loaded
    into the local image store.
    """
    cmd = [executable, "buildx", "build", *_common_build_flags(request)]
    cmd.append("--push" if request.push else "--load")
    cmd.append(str(request.context))
    return cmd


class DockerEngine:
    """ContainerEngine implementation backed by the docker CLI."""

    def __init__(
        self,
        executable: str = "docker",
        timeout: float | None = None,
        stdout: int | IO[str] | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.stdout = stdout

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def has_buildx(self) -> bool:
        return command_succeeds([self.executable, "buildx", "version"])

    def _build(self, cmd: list[str]) -> None:
        try:
            run_command(cmd, timeout=self.timeout, stdout=self.stdout)
        except CommandError as e:
            raise ImageBuildError(
                f"image build failed: {e}", exit_code=e.exit_code
            ) from e

    def build(self, request: BuildRequest) -> None:
        self._build(compose_build_command(request, self.executable))

    def buildx_build(self, request: BuildRequest) -> None:
        if request.push:
            logger.info("Building and pushing %s", ", ".join(request.tags))
        else:
            logger.warning(
                "Multi-platform builds with --load only keep the current "
                "platform's image locally"
            )
        self._build(compose_buildx_command(request, self.executable))

    def tag(self, source: str, target: str) -> None:
        try:
            run_command([self.executable, "tag", source, target], capture=True)
        except CommandError as e:
            raise ImageBuildError(
                f"could not tag {source} as {target}: {e}", exit_code=e.exit_code
            ) from e

    def push(self, reference: str) -> None:
        try:
            run_command(
                [self.executable, "push", reference],
                timeout=self.timeout,
                stdout=self.stdout,
            )
        except CommandError as e:
            raise PushError(reference, f"push of {reference} failed: {e}") from e


__all__ = [
    "BuildRequest",
    "ContainerEngine",
    "DockerEngine",
    "compose_build_command",
    "compose_buildx_command",
]
