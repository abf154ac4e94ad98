# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""clix CLI -- ``clix <script> [args...]``.

Loads the script, optionally builds its image, and runs it in the
sandbox selected by ``CLIX_SANDBOX``. Everything after the script path is
passed to the sandboxed program unchanged.

Exit status is the program's own status; setup errors exit with 1.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path

from clix.build import build_image
from clix.config import RuntimeConfig, load_dotenv_once
from clix.errors import ClixError
from clix.golang import as_container_script, run_go
from clix.logging import EnvValueFilter, configure_logging
from clix.sandbox import create_sandbox
from clix.sandbox.sandbox import Stream
from clix.script import ScriptError, load_script


logger = logging.getLogger(__name__)

_USAGE = """\
usage: clix <script> [args...]

Runs the program described by <script> in a sandbox. Arguments after the
script path are passed to the program.

environment:
  CLIX_SANDBOX            docker (default) or chroot
  CLIX_CONTAINER_COMMAND  container engine binary (default: docker)
  CLIX_GIT_COMMAND        git binary (default: git)
  CLIX_LOG_LEVEL          log level (default: WARNING)\
"""


def run_script(
    script_path: Path,
    args: Sequence[str],
    config: RuntimeConfig,
    *,
    stdin: Stream = None,
    stdout: Stream = None,
    stderr: Stream = None,
) -> int:
    """Load and run a script.

    Dispatch order: ``build`` (then run the built image), ``image``,
    ``go``.

    Returns:
        Exit status of the program.

    Raises:
        ClixError: On any setup failure.
    """
    script = load_script(script_path)
    EnvValueFilter.add_values(env_var.value for env_var in script.env)

    if script.build is not None:
        image = build_image(
            script.build,
            container_command=config.container_command,
            git_command=config.git_command,
            stdout=stdout,
            stderr=stderr,
        )
        script = script.with_image(image)

    if script.image:
        sandbox = create_sandbox(config)
        return sandbox.run(
            script, args, stdin=stdin, stdout=stdout, stderr=stderr
        )

    if script.go is not None:
        if script.mounts:
            container_script, go_args = as_container_script(script, args)
            sandbox = create_sandbox(config)
            return sandbox.run(
                container_script,
                go_args,
                stdin=stdin,
                stdout=stdout,
                stderr=stderr,
            )
        return run_go(
            script.go, args, stdin=stdin, stdout=stdout, stderr=stderr
        )

    raise ScriptError(
        f"{script_path}: script configuration missing "
        "(expected 'go', 'image' or 'build')"
    )


def main(
    argv: Sequence[str],
    environ: Mapping[str, str] | None = None,
) -> int:
    """Run the CLI and return the process exit status.

    Args:
        argv: Arguments after the program name.
        environ: Environment (default: os.environ, after loading .env).
    """
    if not argv:
        print(_USAGE, file=sys.stderr)
        return 1
    if argv[0] in ("-h", "--help"):
        print(_USAGE)
        return 0

    if environ is None:
        load_dotenv_once()

    try:
        config = RuntimeConfig.from_env(environ)
    except ClixError as e:
        configure_logging()
        logger.error("%s", e)
        return 1

    configure_logging(config.log_level)

    try:
        return run_script(Path(argv[0]), argv[1:], config)
    except ClixError as e:
        logger.error("%s", e)
        return 1


def cli() -> None:
    """Entry point for the ``clix`` console script."""
    sys.exit(main(sys.argv[1:]))


if __name__ == "__main__":
    cli()
