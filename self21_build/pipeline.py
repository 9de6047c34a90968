"""Build pipeline orchestration.

This module provides the high-level run API:
- run_pipeline(): preflight, acquire source, build, tag, push, cleanup
- build_image(): dispatch to the standard or multi-platform builder
- publish(): push registry references after a standard build

Every step either completes or raises; a failure aborts the remaining
steps. The checkout is only removed after build and push succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from self21_build.images.docker import BuildRequest, ContainerEngine
from self21_build.images.preflight import check_engine
from self21_build.images.tags import compose_build_args, format_build_time, refs_for
from self21_build.source.checkout import acquire_source, checkout_lock, remove_checkout
from self21_build.source.git import VersionControl
from self21_build.types import BuildOptions, BuildSummary, Checkout

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_image(
    engine: ContainerEngine,
    options: BuildOptions,
    checkout: Checkout,
    build_time: str,
) -> tuple[list[str], list[str]]:
    """Build the image for a checkout.

    Standard builds apply the local tags and then alias them to their
    registry references. Multi-platform builds apply every tag in one
    buildx invocation and push directly when publishing.

    Args:
        engine: Container engine capability.
        options: Resolved options.
        checkout: Checkout to build from.
        build_time: Formatted BUILDTIME value.

    Returns:
        Tuple of (local refs, registry refs).

    Raises:
        ImageBuildError: If the build or tagging fails.
    """
    local, remote = refs_for(options, checkout)
    build_args = compose_build_args(build_time, options.image_tag, checkout.commit)

    if options.is_multi_platform:
        logger.info("Using buildx for multi-platform build: %s", options.platform_spec)
        engine.buildx_build(
            BuildRequest(
                context=checkout.path,
                tags=[*local, *remote],
                build_args=build_args,
                platforms=list(options.platforms),
                no_cache=options.no_cache,
                dockerfile=options.dockerfile,
                push=options.should_push,
            )
        )
        return local, remote

    engine.build(
        BuildRequest(
            context=checkout.path,
            tags=local,
            build_args=build_args,
            platforms=list(options.platforms),
            no_cache=options.no_cache,
            dockerfile=options.dockerfile,
        )
    )
    for source, target in zip(local, remote):
        engine.tag(source, target)
    return local, remote


def publish(
    engine: ContainerEngine,
    options: BuildOptions,
    local: list[str],
    remote: list[str],
) -> list[str]:
    """Push the registry references if publishing was requested.

    Without a registry there is nothing to push and callers get an
    empty list; the CLI warns about that case before the build starts.

    Returns:
        References that were pushed, in push order.

    Raises:
        PushError: On the first failed push; later references are not tried.
    """
    if not options.push:
        return []
    if not options.registry:
        return []
    if options.is_multi_platform:
        # buildx --push already published every tag it applied
        return [*local, *remote]

    pushed: list[str] = []
    for ref in remote:
        engine.push(ref)
        pushed.append(ref)
    return pushed


def run_instructions(
    image_ref: str, image_name: str, image_tag: str, port: int
) -> list[str]:
    """Return the commands a user runs to start the built image."""
    return [
        f"docker run -d -p {port}:{port} -v ./data:/data {image_ref}",
        f"IMAGE_NAME={image_name} IMAGE_TAG={image_tag} docker-compose up -d",
    ]


def run_pipeline(
    options: BuildOptions,
    vcs: VersionControl,
    engine: ContainerEngine,
    lock_timeout: float | None = None,
    clock: Clock | None = None,
    server_port: int = 3000,
) -> BuildSummary:
    """Run the whole build pipeline once.

    Args:
        options: Resolved options.
        vcs: Version-control capability.
        engine: Container engine capability.
        lock_timeout: Seconds to wait for the checkout lock (None = block).
        clock: Source of the build timestamp (defaults to now, UTC).
        server_port: Port shown in the run instructions.

    Returns:
        BuildSummary for the successful run.

    Raises:
        Self21BuildError: Subclass for whichever step failed.
    """
    check_engine(engine, options)
    now = clock or _utcnow

    with checkout_lock(options.source_dir, timeout=lock_timeout):
        checkout = acquire_source(
            vcs, options.repo_url, options.branch, options.source_dir
        )

        build_time = format_build_time(now())
        logger.info("Building image %s:%s", options.image_name, options.image_tag)
        local, remote = build_image(engine, options, checkout, build_time)

        pushed = publish(engine, options, local, remote)

        removed = False
        if options.clean:
            remove_checkout(checkout)
            removed = True

    image_ref = local[0]
    logger.info("Build completed: %s (%s)", image_ref, checkout.commit)
    return BuildSummary(
        image=image_ref,
        commit=checkout.commit,
        branch=checkout.branch,
        build_path=options.build_path,
        platforms=list(options.platforms),
        build_time=build_time,
        source_dir=str(checkout.path),
        local_refs=local,
        registry_refs=remote,
        pushed_refs=pushed,
        loaded_locally=not (options.is_multi_platform and options.should_push),
        source_removed=removed,
        run_instructions=run_instructions(
            image_ref, options.image_name, options.image_tag, server_port
        ),
    )


__all__ = ["build_image", "publish", "run_instructions", "run_pipeline"]
