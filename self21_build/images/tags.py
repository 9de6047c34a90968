"""Image references and build arguments.

Pure helpers that derive tags and build-time arguments from the resolved
options and the checkout. Nothing here touches the container engine.
"""

from __future__ import annotations

from datetime import datetime, timezone

from self21_build.types import BuildOptions, Checkout

BUILD_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_build_time(moment: datetime) -> str:
    """Format a timestamp as UTC ISO 8601 with a trailing Z.

    Naive datetimes are taken to already be UTC.
    """
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(BUILD_TIME_FORMAT)


def compose_build_args(build_time: str, version: str, revision: str) -> dict[str, str]:
    """Return the build-time arguments injected into every build."""
    return {
        "BUILDTIME": build_time,
        "VERSION": version,
        "REVISION": revision,
    }


def _unique(refs: list[str]) -> list[str]:
    # A tag equal to the commit hash would otherwise be passed twice.
    seen: list[str] = []
    for ref in refs:
        if ref not in seen:
            seen.append(ref)
    return seen


def local_refs(image_name: str, image_tag: str, commit: str) -> list[str]:
    """Return the local references: requested tag, then commit."""
    return _unique([f"{image_name}:{image_tag}", f"{image_name}:{commit}"])


def registry_refs(registry: str | None, image_tag: str, commit: str) -> list[str]:
    """Return the registry-qualified references, empty without a registry."""
    if not registry:
        return []
    return _unique([f"{registry}:{image_tag}", f"{registry}:{commit}"])


def refs_for(options: BuildOptions, checkout: Checkout) -> tuple[list[str], list[str]]:
    """Return (local refs, registry refs) for a run."""
    return (
        local_refs(options.image_name, options.image_tag, checkout.commit),
        registry_refs(options.registry, options.image_tag, checkout.commit),
    )


__all__ = [
    "BUILD_TIME_FORMAT",
    "compose_build_args",
    "format_build_time",
    "local_refs",
    "refs_for",
    "registry_refs",
]
