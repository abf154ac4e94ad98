# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for clix.build."""

import hashlib
import subprocess
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from clix.build import (
    ImageBuildError,
    build_image,
    get_remote_head,
    image_tag,
)
from clix.script import BuildConfig


REPO = "https://github.com/example/My-Tool.git"
COMMIT = "0123456789abcdef0123456789abcdef01234567"


class TestImageTag:
    """Tests for image_tag()."""

    def test_format(self) -> None:
        """Tag combines repo name, URL hash and commit."""
        url_hash = hashlib.sha256(REPO.encode()).hexdigest()[:8]

        assert image_tag(REPO, COMMIT) == f"clix-my-tool-{url_hash}:{COMMIT}"

    def test_trailing_slash(self) -> None:
        tag = image_tag("https://example.com/tools/fmt/", "abc")

        assert tag.startswith("clix-fmt-")

    def test_scp_style_url(self) -> None:
        """Colons in the repository name cannot appear in the name part."""
        tag = image_tag("git@example.com:tool.git", "abc")

        name, commit = tag.split(":")
        assert name.startswith("clix-")
        assert commit == "abc"


class TestGetRemoteHead:
    """Tests for get_remote_head()."""

    def test_parses_first_sha(self) -> None:
        output = f"{COMMIT}\tHEAD\n"
        with patch(
            "clix.build.subprocess.run",
            return_value=MagicMock(stdout=output),
        ) as mock_run:
            assert get_remote_head(REPO) == COMMIT

        assert mock_run.call_args[0][0] == ["git", "ls-remote", REPO, "HEAD"]

    def test_branch(self) -> None:
        with patch(
            "clix.build.subprocess.run",
            return_value=MagicMock(stdout=f"{COMMIT}\trefs/heads/dev\n"),
        ) as mock_run:
            get_remote_head(REPO, "dev", git_command="/opt/git")

        assert mock_run.call_args[0][0] == [
            "/opt/git",
            "ls-remote",
            REPO,
            "dev",
        ]

    def test_no_such_ref(self) -> None:
        with patch(
            "clix.build.subprocess.run", return_value=MagicMock(stdout="")
        ):
            with pytest.raises(ImageBuildError, match="No ref 'gone'"):
                get_remote_head(REPO, "gone")

    def test_ls_remote_failure(self) -> None:
        error = subprocess.CalledProcessError(
            128, ["git"], stderr="fatal: repository not found\n"
        )
        with patch("clix.build.subprocess.run", side_effect=error):
            with pytest.raises(ImageBuildError, match="repository not found"):
                get_remote_head(REPO)


def _engine(images_output: str, calls: list[list[str]]) -> Any:
    """subprocess.run side effect for git and the container engine."""

    def run(cmd: list[str], **kwargs: Any) -> MagicMock:
        calls.append(cmd)
        if cmd[1] == "ls-remote":
            return MagicMock(stdout=f"{COMMIT}\tHEAD\n", returncode=0)
        if cmd[1] == "images":
            return MagicMock(stdout=images_output, returncode=0)
        return MagicMock(stdout="", returncode=0)

    return run


class TestBuildImage:
    """Tests for build_image()."""

    def test_reuses_existing_image(self) -> None:
        """No clone or build when the tag is already present."""
        calls: list[list[str]] = []
        with patch("subprocess.run", side_effect=_engine("abc123\n", calls)):
            tag = build_image(BuildConfig(git=REPO))

        assert tag == image_tag(REPO, COMMIT)
        assert [c[1] for c in calls] == ["ls-remote", "images"]

    def test_clones_and_builds_with_docker(self) -> None:
        calls: list[list[str]] = []
        build = BuildConfig(git=REPO, branch="main", dockerfile="ci/Dockerfile")
        with patch("subprocess.run", side_effect=_engine("", calls)):
            tag = build_image(build)

        clone, image_build = calls[2], calls[3]
        assert clone[:6] == [
            "git",
            "clone",
            "--depth",
            "1",
            "--branch",
            "main",
        ]
        assert clone[6] == REPO
        assert image_build == [
            "docker",
            "buildx",
            "build",
            "-f",
            "ci/Dockerfile",
            "--load",
            "--tag",
            tag,
            ".",
        ]

    def test_builds_with_podman(self) -> None:
        calls: list[list[str]] = []
        with patch("subprocess.run", side_effect=_engine("", calls)):
            tag = build_image(BuildConfig(git=REPO), container_command="podman")

        assert calls[2][:4] == ["git", "clone", "--depth", "1"]
        assert calls[3] == [
            "podman",
            "build",
            "-f",
            "Dockerfile",
            "--tag",
            tag,
            ".",
        ]

    def test_build_failure(self) -> None:
        def run(cmd: list[str], **kwargs: Any) -> MagicMock:
            if cmd[1] == "ls-remote":
                return MagicMock(stdout=f"{COMMIT}\tHEAD\n")
            if cmd[1] == "images":
                return MagicMock(stdout="")
            if cmd[1] == "clone":
                return MagicMock(returncode=0)
            raise subprocess.CalledProcessError(1, cmd)

        with patch("subprocess.run", side_effect=run):
            with pytest.raises(ImageBuildError, match="image build failed"):
                build_image(BuildConfig(git=REPO))

    def test_clone_failure(self) -> None:
        def run(cmd: list[str], **kwargs: Any) -> MagicMock:
            if cmd[1] == "ls-remote":
                return MagicMock(stdout=f"{COMMIT}\tHEAD\n")
            if cmd[1] == "images":
                return MagicMock(stdout="")
            raise FileNotFoundError(2, "No such file", cmd[0])

        with patch("subprocess.run", side_effect=run):
            with pytest.raises(ImageBuildError, match="git clone failed"):
                build_image(BuildConfig(git=REPO))
