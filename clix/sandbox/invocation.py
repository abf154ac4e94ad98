# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Container engine invocation building.

Produces the argument vector passed to the engine binary::

    run -i [-t] [-v host:guest]... [-e NAME=VALUE]... -w <cwd>
        [--entrypoint E] <image> [args...]
"""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Sequence
from pathlib import Path
from typing import IO, TYPE_CHECKING

from clix.sandbox.digest import ImageAddresser
from clix.sandbox.errors import MissingRootError
from clix.sandbox.mounts import MountResolver, needs_digest


if TYPE_CHECKING:
    from clix.script import ScriptConfig


logger = logging.getLogger(__name__)


def is_interactive(stream: IO[str] | IO[bytes] | int | None) -> bool:
    """Check whether a stream is attached to a character device.

    Used on stdin to decide whether the engine should allocate a
    pseudo-terminal. Accepts a file object or a raw descriptor. Never
    raises: pipes, StringIO and closed descriptors are not interactive.
    """
    if stream is None:
        return False
    try:
        fd = stream if isinstance(stream, int) else stream.fileno()
        mode = os.fstat(fd).st_mode
    except (AttributeError, OSError, ValueError):
        return False
    return stat.S_ISCHR(mode)


def build_engine_args(
    script: ScriptConfig,
    args: Sequence[str],
    interactive: bool,
    *,
    resolver: MountResolver,
    addresser: ImageAddresser,
    cwd: Path | None = None,
) -> list[str]:
    """Build the engine arguments for running a script.

    The image digest is looked up only when a mount needs it.

    Args:
        script: Script configuration.
        args: Trailing user arguments.
        interactive: Whether to request a pseudo-terminal (``-t``).
        resolver: Mount resolver.
        addresser: Image content addresser for ``${cacheDir}`` mounts.
        cwd: Working directory inside the container (default: the
            process working directory).

    Returns:
        Argument vector, without the engine binary itself.

    Raises:
        MissingRootError: If the script has no image.
        SandboxError: If digest lookup or mount resolution fails.
    """
    if not script.image:
        raise MissingRootError("Container engine sandbox requires an image")
    if cwd is None:
        cwd = Path.cwd()

    cmd = ["run", "-i"]
    if interactive:
        cmd.append("-t")

    image_digest = None
    if needs_digest(script.mounts):
        image_digest = addresser.digest(script.image)

    for mount in resolver.resolve(script.mounts, image_digest, cwd=cwd):
        cmd.extend(["-v", mount.as_volume_arg()])

    for env_var in script.env:
        cmd.extend(["-e", f"{env_var.name}={env_var.value}"])

    cmd.extend(["-w", str(cwd)])

    if script.entrypoint:
        cmd.extend(["--entrypoint", script.entrypoint])

    cmd.append(script.image)
    cmd.extend(args)
    return cmd


def redact_command(cmd: Sequence[str]) -> list[str]:
    """Mask environment values in a command for logging.

    ``-e NAME=VALUE`` becomes ``-e NAME=***``.
    """
    redacted: list[str] = []
    skip_next = False
    for i, arg in enumerate(cmd):
        if skip_next:
            skip_next = False
            continue
        if arg == "-e" and i + 1 < len(cmd):
            next_arg = cmd[i + 1]
            if "=" in next_arg:
                var_name = next_arg.split("=")[0]
                redacted.extend(["-e", f"{var_name}=***"])
                skip_next = True
                continue
        redacted.append(arg)
    return redacted
