"""Git integration for source acquisition.

This module wraps the git CLI behind the ``VersionControl`` protocol so
the pipeline can be driven by a fake in tests.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Protocol

from self21_build.errors import SourceAcquisitionError
from self21_build.process import (
    CommandError,
    CommandResult,
    command_succeeds,
    run_command,
)

logger = logging.getLogger(__name__)

SHORT_HASH_LENGTH = 7


class VersionControl(Protocol):
    """Version-control capability used by source acquisition."""

    def clone(self, repo_url: str, branch: str, dest: Path) -> None: ...

    def is_work_tree(self, path: Path) -> bool: ...

    def update(self, path: Path, branch: str) -> None: ...

    def short_commit(self, path: Path) -> str: ...


class GitClient:
    """VersionControl implementation backed by the git CLI."""

    def __init__(
        self,
        executable: str = "git",
        timeout: float | None = None,
        stdout: int | IO[str] | None = None,
    ) -> None:
        self.executable = executable
        self.timeout = timeout
        self.stdout = stdout

    def _git(
        self, args: list[str], cwd: Path | None = None, capture: bool = False
    ) -> CommandResult:
        cmd = [self.executable, *args]
        try:
            return run_command(
                cmd,
                cwd=cwd,
                capture=capture,
                timeout=self.timeout,
                stdout=self.stdout,
            )
        except CommandError as e:
            raise SourceAcquisitionError(f"git failed: {e}") from e

    def clone(self, repo_url: str, branch: str, dest: Path) -> None:
        """Shallow-clone exactly one branch into dest."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        self._git(
            [
                "clone",
                "--depth",
                "1",
                "--branch",
                branch,
                "--single-branch",
                repo_url,
                str(dest),
            ]
        )

    def is_work_tree(self, path: Path) -> bool:
        # A bare subdirectory of another repository is not a checkout.
        if not (path / ".git").exists():
            return False
        return command_succeeds(
            [self.executable, "rev-parse", "--is-inside-work-tree"], cwd=path
        )

    def update(self, path: Path, branch: str) -> None:
        """Fetch branch from origin, switch to it and fast-forward.

        Works in shallow single-branch clones because the refspec is
        given explicitly. A diverged local branch fails the merge and
        leaves the working tree untouched.
        """
        remote_ref = f"refs/remotes/origin/{branch}"
        self._git(["fetch", "origin", f"+refs/heads/{branch}:{remote_ref}"], cwd=path)

        local_ref = f"refs/heads/{branch}"
        has_local = command_succeeds(
            [self.executable, "rev-parse", "--verify", "--quiet", local_ref],
            cwd=path,
        )
        if has_local:
            self._git(["checkout", branch], cwd=path)
        else:
            logger.debug("Creating local branch %s tracking origin", branch)
            self._git(["checkout", "-b", branch, f"origin/{branch}"], cwd=path)

        self._git(["merge", "--ff-only", f"origin/{branch}"], cwd=path)

    def short_commit(self, path: Path) -> str:
        result = self._git(
            ["rev-parse", f"--short={SHORT_HASH_LENGTH}", "HEAD"],
            cwd=path,
            capture=True,
        )
        commit = result.stdout.strip()
        if not commit:
            raise SourceAcquisitionError(f"could not read HEAD commit in {path}")
        return commit


__all__ = ["SHORT_HASH_LENGTH", "GitClient", "VersionControl"]
