"""Shared fixtures: in-memory fakes for git and docker."""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from self21_build.errors import ImageBuildError, PushError, SourceAcquisitionError
from self21_build.images.docker import BuildRequest
from self21_build.types import BuildOptions

FAKE_COMMIT = "abc1234"

ENV_VARS = [
    "IMAGE_NAME",
    "IMAGE_TAG",
    "BRANCH",
    "SELF21_IMAGE_NAME",
    "SELF21_IMAGE_TAG",
    "SELF21_BRANCH",
    "SELF21_REGISTRY",
    "SELF21_PLATFORM",
    "SELF21_DOCKERFILE",
    "SELF21_REPO_URL",
    "SELF21_SOURCE_DIR",
    "SELF21_LOG_LEVEL",
    "SELF21_LOCK_TIMEOUT",
    "SELF21_SERVER_PORT",
]


class FakeGit:
    """VersionControl fake that creates directories instead of cloning."""

    def __init__(self, commit: str = FAKE_COMMIT) -> None:
        self.commit = commit
        self.calls: list[tuple[str, ...]] = []
        self.fail_clone = False
        self.fail_update = False

    def clone(self, repo_url: str, branch: str, dest: Path) -> None:
        self.calls.append(("clone", repo_url, branch, str(dest)))
        if self.fail_clone:
            raise SourceAcquisitionError(f"git failed: branch {branch} not found")
        (dest / ".git").mkdir(parents=True)

    def is_work_tree(self, path: Path) -> bool:
        return (path / ".git").is_dir()

    def update(self, path: Path, branch: str) -> None:
        self.calls.append(("update", str(path), branch))
        if self.fail_update:
            raise SourceAcquisitionError("git failed: could not fetch")

    def short_commit(self, path: Path) -> str:
        return self.commit


class FakeEngine:
    """ContainerEngine fake recording every call in order."""

    def __init__(self, available: bool = True, buildx: bool = True) -> None:
        self.available = available
        self.buildx = buildx
        self.calls: list[tuple[str, ...]] = []
        self.requests: list[BuildRequest] = []
        self.fail_build = False
        self.fail_push: set[str] = set()

    @property
    def pushed(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "push"]

    @property
    def tagged(self) -> list[tuple[str, str]]:
        return [(c[1], c[2]) for c in self.calls if c[0] == "tag"]

    def is_available(self) -> bool:
        return self.available

    def has_buildx(self) -> bool:
        return self.buildx

    def build(self, request: BuildRequest) -> None:
        self.calls.append(("build",))
        self.requests.append(request)
        if self.fail_build:
            raise ImageBuildError("image build failed: exited with code 1", 1)

    def buildx_build(self, request: BuildRequest) -> None:
        self.calls.append(("buildx_build",))
        self.requests.append(request)
        if self.fail_build:
            raise ImageBuildError("image build failed: exited with code 1", 1)

    def tag(self, source: str, target: str) -> None:
        self.calls.append(("tag", source, target))

    def push(self, reference: str) -> None:
        self.calls.append(("push", reference))
        if reference in self.fail_push:
            raise PushError(reference, f"push of {reference} failed: denied")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the caller's environment out of settings resolution."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def fake_git() -> FakeGit:
    return FakeGit()


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fixed_clock():
    """Clock returning a fixed UTC instant."""
    return lambda: datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc)


@pytest.fixture
def make_options(tmp_path):
    """Factory for BuildOptions rooted in tmp_path."""

    def _make(**overrides) -> BuildOptions:
        values = {
            "image_name": "self21",
            "image_tag": "latest",
            "branch": "master",
            "repo_url": "https://gitlab.com/HttpAnimations/self21.git",
            "source_dir": tmp_path / "self21-source",
        }
        values.update(overrides)
        return BuildOptions(**values)

    return _make
