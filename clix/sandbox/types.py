# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Value types shared by the sandbox modules."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class MountSpec:
    """A path binding as declared in a script.

    Attributes:
        host_path: Host path. May contain ``${cacheDir}``, the
            ``git.repoRoot(cwd)`` sentinel or a leading ``~``.
        sandbox_path: Path inside the sandbox. Empty means "same as the
            resolved host path".
    """

    host_path: str
    sandbox_path: str = ""


@dataclass(frozen=True)
class EnvVar:
    """An environment variable passed into the sandbox."""

    name: str
    value: str


@dataclass(frozen=True)
class ResolvedMount:
    """A mount with all tokens substituted.

    Attributes:
        host_path: Absolute host directory.
        sandbox_path: Non-empty path inside the sandbox.
    """

    host_path: str
    sandbox_path: str

    def as_volume_arg(self) -> str:
        """Render as the ``host:guest`` value of a ``-v`` flag."""
        return f"{self.host_path}:{self.sandbox_path}"
