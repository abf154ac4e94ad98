# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Sandbox backends.

Two backends implement the Sandbox protocol:

- ContainerEngineSandbox delegates to ``docker run`` (or podman), with
  mounts, environment and working directory passed as engine flags.
- ChrootSandbox runs the program directly with its filesystem root
  switched to a local directory or an unpacked image. It supports neither
  mounts nor environment variables and refuses scripts that declare them.

The backend is chosen once per run by create_sandbox(). Both return the
child's exit status instead of raising for a non-zero exit, so the
caller can exit with the same status.
"""

from __future__ import annotations

import functools
import logging
import os
import subprocess
import sys
from collections.abc import Sequence
from typing import IO, TYPE_CHECKING, Any, Protocol

from clix.config import RuntimeConfig, SandboxKind
from clix.sandbox.digest import EngineImageIndex, ImageAddresser
from clix.sandbox.errors import (
    LaunchError,
    MissingRootError,
    NoCommandError,
    UnsupportedFeatureError,
)
from clix.sandbox.invocation import (
    build_engine_args,
    is_interactive,
    redact_command,
)
from clix.sandbox.mounts import MountResolver
from clix.sandbox.rootfs import EngineImagePuller, RootFilesystemProvisioner


if TYPE_CHECKING:
    from clix.script import ScriptConfig


logger = logging.getLogger(__name__)

#: A stream argument accepted by subprocess (file object, fd or None).
Stream = IO[Any] | int | None


class Sandbox(Protocol):
    """An execution backend for scripts."""

    def run(
        self,
        script: ScriptConfig,
        args: Sequence[str],
        *,
        stdin: Stream = None,
        stdout: Stream = None,
        stderr: Stream = None,
    ) -> int:
        """Run the script's program and wait for it to finish.

        Streams left as None are inherited from the calling process.

        Returns:
            Exit status of the sandboxed program.

        Raises:
            SandboxError: If the sandbox cannot be set up or the program
                cannot be started.
        """
        ...


def exit_status(returncode: int) -> int:
    """Map a subprocess return code to a process exit status.

    Death by signal N (negative return code) maps to 128 + N, as in shells.
    """
    if returncode < 0:
        return 128 - returncode
    return returncode


class ContainerEngineSandbox:
    """Runs scripts with ``<engine> run``."""

    def __init__(
        self,
        container_command: str,
        resolver: MountResolver,
        addresser: ImageAddresser,
    ) -> None:
        """Initialize backend.

        Args:
            container_command: Container runtime command (docker or podman).
            resolver: Mount resolver.
            addresser: Image content addresser for cache mounts.
        """
        self._container_command = container_command
        self._resolver = resolver
        self._addresser = addresser

    def run(
        self,
        script: ScriptConfig,
        args: Sequence[str],
        *,
        stdin: Stream = None,
        stdout: Stream = None,
        stderr: Stream = None,
    ) -> int:
        interactive = is_interactive(sys.stdin if stdin is None else stdin)
        cmd = [
            self._container_command,
            *build_engine_args(
                script,
                args,
                interactive,
                resolver=self._resolver,
                addresser=self._addresser,
            ),
        ]
        logger.debug("Full command: %s", " ".join(redact_command(cmd)))

        try:
            result = subprocess.run(
                cmd, stdin=stdin, stdout=stdout, stderr=stderr
            )
        except OSError as e:
            raise LaunchError(
                f"Error running {self._container_command}: {e}"
            ) from e

        status = exit_status(result.returncode)
        logger.debug(
            "%s exited with status %d", self._container_command, status
        )
        return status


def _enter_root(root: str) -> None:
    """Switch the filesystem root. Runs in the child before exec."""
    os.chroot(root)
    os.chdir("/")


def _chroot_command(script: ScriptConfig, args: Sequence[str]) -> list[str]:
    if script.entrypoint:
        return [script.entrypoint, *args]
    if args:
        return list(args)
    raise NoCommandError("No command specified and no entrypoint in script")


class ChrootSandbox:
    """Runs scripts inside a chroot of a local directory or image.

    Requires privileges to call chroot(2) (root or CAP_SYS_CHROOT).
    """

    def __init__(self, provisioner: RootFilesystemProvisioner) -> None:
        self._provisioner = provisioner

    def run(
        self,
        script: ScriptConfig,
        args: Sequence[str],
        *,
        stdin: Stream = None,
        stdout: Stream = None,
        stderr: Stream = None,
    ) -> int:
        if script.mounts:
            raise UnsupportedFeatureError(
                "Mounts are not supported in the chroot sandbox"
            )
        if script.env:
            raise UnsupportedFeatureError(
                "Environment variables are not supported in the chroot sandbox"
            )
        if not script.image:
            raise MissingRootError(
                "Chroot sandbox requires an image (root directory or "
                "image reference)"
            )
        cmd = _chroot_command(script, args)

        with self._provisioner.prepare(script.image) as root:
            logger.info("Running %s in chroot %s", cmd[0], root.path)
            try:
                result = subprocess.run(
                    cmd,
                    stdin=stdin,
                    stdout=stdout,
                    stderr=stderr,
                    preexec_fn=functools.partial(_enter_root, str(root.path)),
                )
            except (OSError, subprocess.SubprocessError) as e:
                raise LaunchError(
                    f"Error running chroot command {cmd[0]!r} in "
                    f"{root.path}: {e} (chroot needs root or CAP_SYS_CHROOT)"
                ) from e

        status = exit_status(result.returncode)
        logger.debug("%s exited with status %d", cmd[0], status)
        return status


def create_sandbox(config: RuntimeConfig) -> Sandbox:
    """Create the backend selected by the runtime configuration."""
    if config.sandbox_kind is SandboxKind.CHROOT:
        logger.debug("Using chroot sandbox")
        return ChrootSandbox(
            RootFilesystemProvisioner(
                EngineImagePuller(config.container_command)
            )
        )

    logger.debug("Using %s sandbox", config.container_command)
    return ContainerEngineSandbox(
        config.container_command,
        MountResolver(
            config.cache_root,
            config.home,
            git_command=config.git_command,
        ),
        EngineImageIndex(config.container_command),
    )
