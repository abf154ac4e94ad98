# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Resolution of declared mounts into concrete host/sandbox paths.

Scripts declare mounts with symbolic host paths:

- ``${cacheDir}`` -- a per-image cache directory keyed by the image
  digest (``<cache root>/clix/cache/<digest>``). The legacy ``{cacheDir}``
  spelling is still honored but logs a deprecation warning.
- ``git.repoRoot(cwd)`` -- the top-level directory of the git repository
  containing the current directory.
- ``~`` / ``~/...`` -- the invoking user's home directory. On the sandbox
  side ``~`` maps to ``/root``, since the image's home is not known.

Mounts are resolved in declaration order and never deduplicated; when two
mounts target the same sandbox path, the container engine decides which
one wins.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path

from clix.sandbox.errors import (
    LaunchError,
    MissingDigestError,
    MountError,
    NotAGitRepoError,
)
from clix.sandbox.types import MountSpec, ResolvedMount


logger = logging.getLogger(__name__)

CACHE_DIR_TOKEN = "${cacheDir}"
LEGACY_CACHE_DIR_TOKEN = "{cacheDir}"
GIT_REPO_ROOT_TOKEN = "git.repoRoot(cwd)"

#: Home directory assumed inside the sandbox.
SANDBOX_HOME = "/root"


def needs_digest(mounts: Iterable[MountSpec]) -> bool:
    """Check whether any mount references the cache directory token.

    ``${cacheDir}`` contains ``{cacheDir}``, so one substring test covers
    both spellings.
    """
    return any(LEGACY_CACHE_DIR_TOKEN in m.host_path for m in mounts)


def find_git_root(cwd: Path, git_command: str = "git") -> str:
    """Return the top-level directory of the repository containing cwd.

    Raises:
        NotAGitRepoError: If cwd is not inside a git repository.
        LaunchError: If git cannot be executed.
    """
    try:
        result = subprocess.run(
            [git_command, "rev-parse", "--show-toplevel"],
            cwd=cwd,
            check=True,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        raise LaunchError(f"Cannot run {git_command}: {e}") from e
    except subprocess.CalledProcessError as e:
        error_msg = e.stderr.strip() if e.stderr else str(e)
        raise NotAGitRepoError(
            f"{cwd} is not inside a git repository: {error_msg}"
        ) from e
    return result.stdout.strip()


class MountResolver:
    """Turns declared mounts into absolute host/sandbox path pairs.

    Attributes:
        cache_root: Base directory for per-image caches (the user cache
            directory, e.g. ``~/.cache``).
        home: Invoking user's home directory.
        git_command: Git binary used for the repo-root token.
    """

    def __init__(
        self,
        cache_root: Path,
        home: Path,
        *,
        git_command: str = "git",
    ) -> None:
        self.cache_root = cache_root
        self.home = home
        self.git_command = git_command

    def cache_dir(self, image_digest: str) -> Path:
        """Return the cache directory for an image digest."""
        return self.cache_root / "clix" / "cache" / image_digest

    def resolve(
        self,
        mounts: Sequence[MountSpec],
        image_digest: str | None = None,
        *,
        cwd: Path | None = None,
    ) -> list[ResolvedMount]:
        """Resolve mounts in declaration order.

        Args:
            mounts: Declared mounts.
            image_digest: Digest of the script image. Required only when a
                mount uses the cache token.
            cwd: Directory used for the git-root token and for relative
                host paths. Defaults to the process working directory.

        Returns:
            One resolved mount per input mount, same order.

        Raises:
            MissingDigestError: Cache token used without a digest.
            MountError: Cache directory could not be created, or a
                sandbox path is not absolute.
            NotAGitRepoError: Git-root token used outside a repository.
        """
        if cwd is None:
            cwd = Path.cwd()
        return [self._resolve_one(m, image_digest, cwd) for m in mounts]

    def _resolve_one(
        self,
        mount: MountSpec,
        image_digest: str | None,
        cwd: Path,
    ) -> ResolvedMount:
        host_path = mount.host_path
        sandbox_path = mount.sandbox_path

        if LEGACY_CACHE_DIR_TOKEN in host_path:
            host_path = self._substitute_cache_dir(host_path, image_digest)

        if host_path == GIT_REPO_ROOT_TOKEN:
            host_path = find_git_root(cwd, self.git_command)

        if host_path == "~":
            host_path = str(self.home)
        elif host_path.startswith("~/"):
            host_path = os.path.join(self.home, host_path[2:])

        if not os.path.isabs(host_path):
            host_path = os.path.normpath(os.path.join(cwd, host_path))

        # TODO: read HOME from the image config instead of assuming /root
        if sandbox_path == "~":
            sandbox_path = SANDBOX_HOME
        elif sandbox_path.startswith("~/"):
            sandbox_path = f"{SANDBOX_HOME}/{sandbox_path[2:]}"

        if not sandbox_path:
            sandbox_path = host_path
        elif not os.path.isabs(sandbox_path):
            raise MountError(
                f"Mount {mount.host_path!r}: sandboxPath {sandbox_path!r} "
                "must be absolute"
            )

        return ResolvedMount(host_path=host_path, sandbox_path=sandbox_path)

    def _substitute_cache_dir(
        self, host_path: str, image_digest: str | None
    ) -> str:
        if not image_digest:
            raise MissingDigestError(
                f"Mount {host_path!r} uses {CACHE_DIR_TOKEN} "
                "but the image digest is not available"
            )

        cache_dir = self.cache_dir(image_digest)
        try:
            cache_dir.mkdir(mode=0o755, parents=True, exist_ok=True)
        except OSError as e:
            raise MountError(
                f"Failed to create cache directory {cache_dir}: {e}"
            ) from e

        host_path = host_path.replace(CACHE_DIR_TOKEN, str(cache_dir))
        if LEGACY_CACHE_DIR_TOKEN in host_path:
            logger.warning(
                "%s is deprecated and will be removed in a future "
                "version; use %s instead",
                LEGACY_CACHE_DIR_TOKEN,
                CACHE_DIR_TOKEN,
            )
            host_path = host_path.replace(
                LEGACY_CACHE_DIR_TOKEN, str(cache_dir)
            )
        return host_path
