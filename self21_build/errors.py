"""Error types for self21_build.

Every error carries a stable ``code`` so the CLI (and the JSON output)
can report failures without parsing messages.
"""

from __future__ import annotations

USAGE_ERROR = "usage"
MISSING_DEPENDENCY = "missing_dependency"
SOURCE_ERROR = "source_error"
LOCK_TIMEOUT = "lock_timeout"
BUILD_ERROR = "build_failed"
PUSH_ERROR = "push_failed"
CLEANUP_ERROR = "cleanup_failed"


class Self21BuildError(Exception):
    """Base error for all orchestrator failures."""

    default_code = "error"

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code or self.default_code


class InvalidOptionsError(Self21BuildError):
    """Raised when resolved options are unusable (empty name, tag, ...)."""

    default_code = USAGE_ERROR


class MissingDependencyError(Self21BuildError):
    """Raised when a required external tool is unavailable."""

    default_code = MISSING_DEPENDENCY

    def __init__(self, tool: str, message: str) -> None:
        super().__init__(message)
        self.tool = tool


class SourceAcquisitionError(Self21BuildError):
    """Raised when cloning or updating the upstream checkout fails."""

    default_code = SOURCE_ERROR


class CheckoutLockError(Self21BuildError):
    """Raised when another run holds the checkout lock for too long."""

    default_code = LOCK_TIMEOUT


class ImageBuildError(Self21BuildError):
    """Raised when the container engine fails to build or tag the image."""

    default_code = BUILD_ERROR

    def __init__(self, message: str, exit_code: int | None = None) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class PushError(Self21BuildError):
    """Raised when pushing an image reference to the registry fails."""

    default_code = PUSH_ERROR

    def __init__(self, reference: str, message: str) -> None:
        super().__init__(message)
        self.reference = reference


class CleanupError(Self21BuildError):
    """Raised when the checkout cannot be removed after a successful run."""

    default_code = CLEANUP_ERROR


__all__ = [
    "BUILD_ERROR",
    "CLEANUP_ERROR",
    "LOCK_TIMEOUT",
    "MISSING_DEPENDENCY",
    "PUSH_ERROR",
    "SOURCE_ERROR",
    "USAGE_ERROR",
    "CheckoutLockError",
    "CleanupError",
    "ImageBuildError",
    "InvalidOptionsError",
    "MissingDependencyError",
    "PushError",
    "Self21BuildError",
    "SourceAcquisitionError",
]
