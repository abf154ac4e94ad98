# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container image builds from a git repository.

Scripts with a ``build:`` section get their image built from a remote
repository. The image tag encodes the repository and the commit it was
built from::

    clix-<repo name>-<sha256(url)[:8]>:<commit sha>

so an image is rebuilt only when the remote branch moves.
"""

from __future__ import annotations

import hashlib
import logging
import subprocess
import tempfile
import time
from pathlib import Path

from clix.errors import ClixError
from clix.sandbox.digest import EngineImageIndex
from clix.sandbox.sandbox import Stream
from clix.script import BuildConfig


logger = logging.getLogger(__name__)


class ImageBuildError(ClixError):
    """Raised when the script image cannot be built."""


def image_tag(repo_url: str, commit: str) -> str:
    """Compute the image tag for a repository at a commit."""
    repo_hash = hashlib.sha256(repo_url.encode()).hexdigest()[:8]
    base_name = repo_url.rstrip("/").split("/")[-1]
    base_name = base_name.removesuffix(".git").replace(":", "-").lower()
    return f"clix-{base_name}-{repo_hash}:{commit}"


def get_remote_head(
    repo_url: str, branch: str = "", *, git_command: str = "git"
) -> str:
    """Return the commit SHA a remote branch (or HEAD) points to.

    Raises:
        ImageBuildError: If ls-remote fails or returns nothing.
    """
    cmd = [git_command, "ls-remote", repo_url, branch or "HEAD"]
    try:
        result = subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError) as e:
        stderr = getattr(e, "stderr", None)
        error_msg = stderr.strip() if stderr else str(e)
        raise ImageBuildError(
            f"Failed to get remote head of {repo_url}: {error_msg}"
        ) from e

    lines = result.stdout.strip().splitlines()
    if not lines or not lines[0].split():
        raise ImageBuildError(
            f"No ref {branch or 'HEAD'!r} found in {repo_url}"
        )
    return lines[0].split()[0]


def _build_command(
    container_command: str, dockerfile: str, tag: str
) -> list[str]:
    if Path(container_command).name == "docker":
        return [
            container_command,
            "buildx",
            "build",
            "-f",
            dockerfile,
            "--load",
            "--tag",
            tag,
            ".",
        ]
    return [container_command, "build", "-f", dockerfile, "--tag", tag, "."]


def build_image(
    build: BuildConfig,
    *,
    container_command: str = "docker",
    git_command: str = "git",
    stdout: Stream = None,
    stderr: Stream = None,
) -> str:
    """Build (or reuse) the image for a build configuration.

    Args:
        build: Repository, branch and Dockerfile to build.
        container_command: Container runtime command.
        git_command: Git binary.
        stdout: Stream for clone/build output (default: inherited).
        stderr: Stream for clone/build diagnostics (default: inherited).

    Returns:
        Image tag.

    Raises:
        ImageBuildError: If any step fails.
    """
    commit = get_remote_head(build.git, build.branch, git_command=git_command)
    tag = image_tag(build.git, commit)

    if EngineImageIndex(container_command).exists(tag):
        logger.debug("Image %s already built, reusing", tag)
        return tag

    with tempfile.TemporaryDirectory(prefix="clix-build-") as tmpdir:
        clone_cmd = [git_command, "clone", "--depth", "1"]
        if build.branch:
            clone_cmd.extend(["--branch", build.branch])
        clone_cmd.extend([build.git, tmpdir])

        logger.info("Cloning %s...", build.git)
        _run_step(clone_cmd, "git clone", stdout=stdout, stderr=stderr)

        logger.info("Building image %s...", tag)
        start_time = time.time()
        _run_step(
            _build_command(container_command, build.dockerfile, tag),
            "image build",
            cwd=tmpdir,
            stdout=stdout,
            stderr=stderr,
        )

    elapsed = time.time() - start_time
    logger.info("Image built in %.2fs: %s", elapsed, tag)
    return tag


def _run_step(
    cmd: list[str],
    name: str,
    *,
    cwd: str | None = None,
    stdout: Stream,
    stderr: Stream,
) -> None:
    try:
        subprocess.run(cmd, cwd=cwd, check=True, stdout=stdout, stderr=stderr)
    except (OSError, subprocess.CalledProcessError) as e:
        raise ImageBuildError(f"{name} failed: {e}") from e
