# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Go toolchain delegation for ``go:`` scripts.

Without mounts, a Go script runs ``go run <pkg>[@version] args...``
directly on the host. With mounts it needs a sandbox, so it is turned
into a container script on ``golang:latest`` whose arguments are the same
``go run`` command line.
"""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence

from clix.errors import ClixError
from clix.sandbox.sandbox import Stream, exit_status
from clix.script import GoConfig, ScriptConfig


logger = logging.getLogger(__name__)

GO_IMAGE = "golang:latest"


class GoRunError(ClixError):
    """Raised when the go toolchain cannot be started."""


def go_run_args(go: GoConfig, args: Sequence[str]) -> list[str]:
    """Return the ``go run`` command line for a Go script."""
    return ["go", "run", go.target, *args]


def as_container_script(
    script: ScriptConfig, args: Sequence[str]
) -> tuple[ScriptConfig, list[str]]:
    """Convert a Go script into a container script and its arguments.

    The image's default entrypoint is kept, so the arguments start with
    ``go run``.
    """
    assert script.go is not None
    return script.with_image(GO_IMAGE), go_run_args(script.go, args)


def run_go(
    go: GoConfig,
    args: Sequence[str],
    *,
    stdin: Stream = None,
    stdout: Stream = None,
    stderr: Stream = None,
) -> int:
    """Run a Go package on the host and return its exit status.

    Raises:
        GoRunError: If the go binary cannot be started.
    """
    cmd = go_run_args(go, args)
    logger.debug("Running: %s", " ".join(cmd))
    try:
        result = subprocess.run(cmd, stdin=stdin, stdout=stdout, stderr=stderr)
    except OSError as e:
        raise GoRunError(f"Error running go: {e}") from e
    return exit_status(result.returncode)
