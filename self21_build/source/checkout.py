"""Checkout management for the upstream source.

This module handles:
- Locking the checkout directory against concurrent runs
- Cloning or fast-forwarding the requested branch
- Removing the checkout after a successful run
"""

from __future__ import annotations

import fcntl
import logging
import os
import shutil
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from self21_build.errors import (
    CheckoutLockError,
    CleanupError,
    SourceAcquisitionError,
)
from self21_build.source.git import VersionControl
from self21_build.types import Checkout

logger = logging.getLogger(__name__)


def lock_path_for(source_dir: Path) -> Path:
    """Return the lock file used for a checkout directory.

    The lock sits next to the checkout, not inside it, so cloning into
    a missing directory and removing the checkout both work while held.
    """
    source_dir = source_dir.absolute()
    return source_dir.parent / f".{source_dir.name}.lock"


@contextmanager
def checkout_lock(
    source_dir: Path,
    timeout: float | None = None,
) -> Iterator[Path]:
    """Hold an advisory lock on a checkout directory.

    Args:
        source_dir: Checkout directory to lock.
        timeout: Lock acquisition timeout in seconds (None = blocking).

    Yields:
        Path of the lock file.

    Raises:
        CheckoutLockError: If the lock cannot be acquired within timeout.
    """
    lock_file = lock_path_for(source_dir)
    lock_file.parent.mkdir(parents=True, exist_ok=True)

    logger.debug("Acquiring checkout lock: %s", lock_file)

    fd = os.open(str(lock_file), os.O_RDWR | os.O_CREAT, 0o600)
    lock_acquired = False
    try:
        if timeout is not None:
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                    lock_acquired = True
                    break
                except BlockingIOError:
                    if time.monotonic() - start >= timeout:
                        raise CheckoutLockError(
                            f"another run is using {source_dir} "
                            f"(waited {timeout:g}s for {lock_file})"
                        ) from None
                    time.sleep(0.1)
        else:
            fcntl.flock(fd, fcntl.LOCK_EX)
            lock_acquired = True

        logger.debug("Checkout lock acquired: %s", lock_file)
        yield lock_file
    finally:
        if lock_acquired:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Checkout lock released: %s", lock_file)
        os.close(fd)


def acquire_source(
    vcs: VersionControl,
    repo_url: str,
    branch: str,
    source_dir: Path,
) -> Checkout:
    """Ensure source_dir holds the tip of branch.

    An existing checkout is fetched and fast-forwarded in place; a
    missing one is shallow-cloned.

    Args:
        vcs: Version-control capability.
        repo_url: Upstream repository URL.
        branch: Branch to check out.
        source_dir: Checkout directory.

    Returns:
        Checkout describing the working copy.

    Raises:
        SourceAcquisitionError: If the directory is not a checkout, or
            git fails.
    """
    if source_dir.exists():
        if not source_dir.is_dir() or not vcs.is_work_tree(source_dir):
            raise SourceAcquisitionError(
                f"{source_dir} exists but is not a git checkout; "
                "remove it or choose another --source-dir"
            )
        logger.info("Updating existing source directory %s", source_dir)
        vcs.update(source_dir, branch)
    else:
        logger.info("Cloning %s (branch %s) into %s", repo_url, branch, source_dir)
        vcs.clone(repo_url, branch, source_dir)

    commit = vcs.short_commit(source_dir)
    logger.info("Source commit: %s", commit)
    return Checkout(path=source_dir, branch=branch, commit=commit)


def remove_checkout(checkout: Checkout) -> None:
    """Delete the checkout directory.

    Raises:
        CleanupError: If the directory cannot be removed.
    """
    logger.info("Removing source directory %s", checkout.path)
    try:
        shutil.rmtree(checkout.path)
    except OSError as e:
        raise CleanupError(
            f"could not remove source directory {checkout.path}: {e}"
        ) from e


__all__ = ["acquire_source", "checkout_lock", "lock_path_for", "remove_checkout"]
