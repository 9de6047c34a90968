"""Tests for pipeline.py module.

Drives the whole pipeline against the git and docker fakes.
"""

from unittest.mock import patch

import pytest

from self21_build.errors import (
    CleanupError,
    ImageBuildError,
    MissingDependencyError,
    PushError,
    SourceAcquisitionError,
)
from self21_build.pipeline import build_image, publish, run_instructions, run_pipeline
from self21_build.types import BuildPath, Checkout

FAKE_COMMIT = "abc1234"


class TestDefaultRun:
    """Tests for a run with default options."""

    def test_tags_with_tag_and_commit(
        self, make_options, fake_git, fake_engine, fixed_clock
    ):
        """Default run should produce self21:latest and self21:<hash>."""
        options = make_options()

        summary = run_pipeline(options, fake_git, fake_engine, clock=fixed_clock)

        assert summary.local_refs == ["self21:latest", f"self21:{FAKE_COMMIT}"]
        assert summary.image == "self21:latest"
        assert summary.commit == FAKE_COMMIT
        assert len(summary.commit) == 7
        assert fake_engine.requests[0].tags == summary.local_refs

    def test_checkout_retained(self, make_options, fake_git, fake_engine):
        """Without --clean the checkout should stay on disk."""
        options = make_options()

        summary = run_pipeline(options, fake_git, fake_engine)

        assert options.source_dir.is_dir()
        assert summary.source_removed is False

    def test_build_args_injected(
        self, make_options, fake_git, fake_engine, fixed_clock
    ):
        """BUILDTIME, VERSION and REVISION should reach the engine."""
        options = make_options(image_tag="v1.0.0")

        run_pipeline(options, fake_git, fake_engine, clock=fixed_clock)

        assert fake_engine.requests[0].build_args == {
            "BUILDTIME": "2024-05-01T12:30:45Z",
            "VERSION": "v1.0.0",
            "REVISION": FAKE_COMMIT,
        }

    def test_standard_path_without_registry(self, make_options, fake_git, fake_engine):
        """Standard build should not tag or push without a registry."""
        options = make_options()

        summary = run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.calls == [("build",)]
        assert summary.build_path == BuildPath.STANDARD
        assert summary.registry_refs == []
        assert summary.pushed_refs == []

    def test_no_cache_and_dockerfile_forwarded(
        self, make_options, fake_git, fake_engine, tmp_path
    ):
        """Cache policy and Dockerfile should be passed through."""
        dockerfile = tmp_path / "Dockerfile"
        options = make_options(no_cache=True, dockerfile=dockerfile)

        run_pipeline(options, fake_git, fake_engine)

        request = fake_engine.requests[0]
        assert request.no_cache is True
        assert request.dockerfile == dockerfile
        assert request.context == options.source_dir

    def test_run_instructions(self, make_options, fake_git, fake_engine):
        """Summary should include docker run and compose instructions."""
        options = make_options(image_tag="v2")

        summary = run_pipeline(options, fake_git, fake_engine, server_port=8080)

        assert summary.run_instructions[0] == (
            "docker run -d -p 8080:8080 -v ./data:/data self21:v2"
        )
        assert "IMAGE_TAG=v2" in summary.run_instructions[1]


class TestSourceAcquisition:
    """Tests for the clone-or-update step."""

    def test_first_run_clones(self, make_options, fake_git, fake_engine):
        """Missing checkout should be cloned."""
        options = make_options(branch="develop")

        run_pipeline(options, fake_git, fake_engine)

        assert fake_git.calls == [
            ("clone", options.repo_url, "develop", str(options.source_dir))
        ]

    def test_rerun_never_reclones(self, make_options, fake_git, fake_engine):
        """Existing checkout should be updated in place."""
        options = make_options()

        run_pipeline(options, fake_git, fake_engine)
        run_pipeline(options, fake_git, fake_engine)

        kinds = [c[0] for c in fake_git.calls]
        assert kinds == ["clone", "update"]

    def test_source_error_stops_before_build(
        self, make_options, fake_git, fake_engine
    ):
        """A failed clone should not reach the engine."""
        fake_git.fail_clone = True
        options = make_options()

        with pytest.raises(SourceAcquisitionError):
            run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.calls == []


class TestPreflight:
    """Tests for the precondition checks."""

    def test_missing_docker(self, make_options, fake_git, fake_engine):
        """Missing docker should fail before acquisition."""
        fake_engine.available = False

        with pytest.raises(MissingDependencyError) as exc_info:
            run_pipeline(make_options(), fake_git, fake_engine)

        assert exc_info.value.tool == "docker"
        assert fake_git.calls == []

    def test_multi_platform_without_buildx(self, make_options, fake_git, fake_engine):
        """Multi-platform without buildx should fail before acquisition."""
        fake_engine.buildx = False
        options = make_options(platforms=("linux/amd64", "linux/arm64"))

        with pytest.raises(MissingDependencyError) as exc_info:
            run_pipeline(options, fake_git, fake_engine)

        assert exc_info.value.tool == "buildx"
        assert fake_git.calls == []
        assert not options.source_dir.exists()

    def test_single_platform_does_not_need_buildx(
        self, make_options, fake_git, fake_engine
    ):
        """Single-platform builds should work without buildx."""
        fake_engine.buildx = False

        summary = run_pipeline(make_options(), fake_git, fake_engine)

        assert summary.build_path == BuildPath.STANDARD


class TestPublish:
    """Tests for tagging and pushing."""

    def test_push_to_registry(self, make_options, fake_git, fake_engine):
        """-p -r should tag and push both registry references."""
        options = make_options(push=True, registry="registry.example/self21")

        summary = run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.tagged == [
            ("self21:latest", "registry.example/self21:latest"),
            (f"self21:{FAKE_COMMIT}", f"registry.example/self21:{FAKE_COMMIT}"),
        ]
        assert fake_engine.pushed == [
            "registry.example/self21:latest",
            f"registry.example/self21:{FAKE_COMMIT}",
        ]
        assert summary.pushed_refs == fake_engine.pushed
        assert summary.local_refs == ["self21:latest", f"self21:{FAKE_COMMIT}"]

    def test_registry_without_push_tags_only(
        self, make_options, fake_git, fake_engine
    ):
        """A registry without --push should tag but not push."""
        options = make_options(registry="registry.example/self21")

        summary = run_pipeline(options, fake_git, fake_engine)

        assert len(fake_engine.tagged) == 2
        assert fake_engine.pushed == []
        assert summary.registry_refs == [
            "registry.example/self21:latest",
            f"registry.example/self21:{FAKE_COMMIT}",
        ]

    def test_push_without_registry_never_pushes(
        self, make_options, fake_git, fake_engine
    ):
        """--push without --registry should not attempt a push."""
        options = make_options(push=True)

        summary = run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.pushed == []
        assert fake_engine.tagged == []
        assert summary.pushed_refs == []

    @pytest.mark.parametrize("failing", ["latest", FAKE_COMMIT])
    def test_push_failure_aborts_before_cleanup(
        self, make_options, fake_git, fake_engine, failing
    ):
        """Push failure on either reference should leave the checkout."""
        fake_engine.fail_push = {f"registry.example/self21:{failing}"}
        options = make_options(
            push=True, registry="registry.example/self21", clean=True
        )

        with pytest.raises(PushError):
            run_pipeline(options, fake_git, fake_engine)

        assert options.source_dir.is_dir()
        # Local tags stay in place
        assert len(fake_engine.tagged) == 2

    def test_first_push_failure_skips_second(
        self, make_options, fake_git, fake_engine
    ):
        """No push is attempted after the first failure."""
        fake_engine.fail_push = {"registry.example/self21:latest"}
        options = make_options(push=True, registry="registry.example/self21")

        with pytest.raises(PushError):
            run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.pushed == ["registry.example/self21:latest"]


class TestMultiPlatform:
    """Tests for the buildx path."""

    def test_load_when_not_pushing(self, make_options, fake_git, fake_engine):
        """Multi-platform without push should load locally."""
        options = make_options(platforms=("linux/amd64", "linux/arm64"))

        summary = run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.calls == [("buildx_build",)]
        request = fake_engine.requests[0]
        assert request.push is False
        assert request.platforms == ["linux/amd64", "linux/arm64"]
        assert summary.build_path == BuildPath.MULTI_PLATFORM
        assert summary.loaded_locally is True

    def test_push_via_buildx(self, make_options, fake_git, fake_engine):
        """Multi-platform push should push in the build, not separately."""
        options = make_options(
            platforms=("linux/amd64", "linux/arm64"),
            push=True,
            registry="registry.example/self21",
        )

        summary = run_pipeline(options, fake_git, fake_engine)

        request = fake_engine.requests[0]
        assert request.push is True
        assert request.tags == [
            "self21:latest",
            f"self21:{FAKE_COMMIT}",
            "registry.example/self21:latest",
            f"registry.example/self21:{FAKE_COMMIT}",
        ]
        assert fake_engine.pushed == []
        assert summary.pushed_refs == request.tags
        assert summary.loaded_locally is False

    def test_push_without_registry_loads(self, make_options, fake_git, fake_engine):
        """Multi-platform --push without registry should not push."""
        options = make_options(platforms=("linux/amd64", "linux/arm64"), push=True)

        summary = run_pipeline(options, fake_git, fake_engine)

        assert fake_engine.requests[0].push is False
        assert summary.pushed_refs == []


class TestCleanup:
    """Tests for --clean."""

    def test_clean_removes_checkout_on_success(
        self, make_options, fake_git, fake_engine
    ):
        """--clean should remove the checkout after a successful build."""
        options = make_options(clean=True)

        summary = run_pipeline(options, fake_git, fake_engine)

        assert not options.source_dir.exists()
        assert summary.source_removed is True

    def test_clean_keeps_checkout_on_build_failure(
        self, make_options, fake_git, fake_engine
    ):
        """A failed build should never remove the checkout."""
        fake_engine.fail_build = True
        options = make_options(clean=True)

        with pytest.raises(ImageBuildError):
            run_pipeline(options, fake_git, fake_engine)

        assert options.source_dir.is_dir()

    def test_clean_then_rerun_clones_again(self, make_options, fake_git, fake_engine):
        """After --clean the next run starts from a fresh clone."""
        options = make_options(clean=True)

        run_pipeline(options, fake_git, fake_engine)
        run_pipeline(options, fake_git, fake_engine)

        assert [c[0] for c in fake_git.calls] == ["clone", "clone"]

    def test_removal_failure_is_typed(self, make_options, fake_git, fake_engine):
        """A checkout that cannot be removed should fail with cleanup_failed."""
        options = make_options(clean=True)
        denied = PermissionError(13, "Permission denied", str(options.source_dir))

        with patch("self21_build.source.checkout.shutil.rmtree", side_effect=denied):
            with pytest.raises(CleanupError) as exc_info:
                run_pipeline(options, fake_git, fake_engine)

        assert exc_info.value.code == "cleanup_failed"
        assert len(fake_engine.requests) == 1


class TestHelpers:
    """Tests for build_image, publish and run_instructions directly."""

    def test_build_image_returns_refs(self, make_options, fake_engine, tmp_path):
        """build_image should return local and registry refs."""
        options = make_options(registry="ghcr.io/user/self21")
        checkout = Checkout(path=tmp_path, branch="master", commit="deadbee")

        local, remote = build_image(
            fake_engine, options, checkout, "2024-01-01T00:00:00Z"
        )

        assert local == ["self21:latest", "self21:deadbee"]
        assert remote == ["ghcr.io/user/self21:latest", "ghcr.io/user/self21:deadbee"]

    def test_publish_without_push(self, make_options, fake_engine):
        """publish should do nothing unless push was requested."""
        options = make_options(registry="ghcr.io/user/self21")

        pushed = publish(fake_engine, options, ["self21:latest"], ["r:latest"])

        assert pushed == []
        assert fake_engine.calls == []

    def test_run_instructions(self):
        """run_instructions should render both commands."""
        lines = run_instructions("self21:latest", "self21", "latest", 3000)

        assert lines == [
            "docker run -d -p 3000:3000 -v ./data:/data self21:latest",
            "IMAGE_NAME=self21 IMAGE_TAG=latest docker-compose up -d",
        ]
