# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Process-wide runtime configuration.

Configuration is read once at startup from environment variables, which
may be supplied through a ``.env`` file in the XDG config directory
(typically ``~/.config/clix/.env``). Variables already set in the
environment take precedence over the file.

Recognized variables:

- ``CLIX_SANDBOX`` -- ``docker`` (default) / ``container`` or ``chroot``.
- ``CLIX_CONTAINER_COMMAND`` -- container engine binary (default
  ``docker``).
- ``CLIX_GIT_COMMAND`` -- git binary (default ``git``).
- ``CLIX_LOG_LEVEL`` -- logging level name (default ``WARNING``).

The resulting RuntimeConfig is passed explicitly to the sandbox factory;
nothing below the CLI reads the environment.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from platformdirs import user_cache_path, user_config_path

from clix.errors import ClixError


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "clix"

_dotenv_loaded = False


class ConfigError(ClixError):
    """Raised for invalid runtime configuration."""


class SandboxKind(Enum):
    """Sandbox backend selected for the whole run."""

    CONTAINER_ENGINE = "docker"
    CHROOT = "chroot"


_SANDBOX_ALIASES = {
    "": SandboxKind.CONTAINER_ENGINE,
    "docker": SandboxKind.CONTAINER_ENGINE,
    "container": SandboxKind.CONTAINER_ENGINE,
    "chroot": SandboxKind.CHROOT,
}


def get_dotenv_path() -> Path:
    """Return the ``.env`` path inside the XDG config directory."""
    return user_config_path(_APP_NAME) / ".env"


def get_cache_root() -> Path:
    """Return the user cache root (e.g. ``~/.cache``).

    Per-image caches live under ``<cache root>/clix/cache/<digest>``.
    """
    return user_cache_path()


def load_dotenv_once(env_path: Path | None = None) -> None:
    """Load the .env file once, if not already loaded.

    Idempotent: calls after the first have no effect. A missing file is
    not an error.

    Args:
        env_path: Explicit .env path. Defaults to get_dotenv_path().
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    from dotenv import load_dotenv

    if env_path is None:
        env_path = get_dotenv_path()
    if env_path.exists():
        load_dotenv(env_path, override=False)
        logger.debug("Loaded .env from %s", env_path)
    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the dotenv loaded state. For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False


@dataclass(frozen=True)
class RuntimeConfig:
    """Settings fixed for the duration of one run.

    Attributes:
        sandbox_kind: Backend to use.
        container_command: Container engine binary.
        git_command: Git binary.
        log_level: Logging level.
        cache_root: User cache root for ``${cacheDir}`` mounts.
        home: Invoking user's home directory.
    """

    sandbox_kind: SandboxKind = SandboxKind.CONTAINER_ENGINE
    container_command: str = "docker"
    git_command: str = "git"
    log_level: int = logging.WARNING
    cache_root: Path = field(default_factory=get_cache_root)
    home: Path = field(default_factory=Path.home)

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None
    ) -> RuntimeConfig:
        """Build configuration from environment variables.

        Args:
            environ: Environment mapping (default: os.environ).

        Raises:
            ConfigError: If a variable has an invalid value.
        """
        if environ is None:
            environ = os.environ

        raw_kind = environ.get("CLIX_SANDBOX", "").strip().lower()
        try:
            sandbox_kind = _SANDBOX_ALIASES[raw_kind]
        except KeyError:
            raise ConfigError(
                f"Invalid CLIX_SANDBOX value {raw_kind!r} "
                f"(expected one of: docker, container, chroot)"
            ) from None

        return cls(
            sandbox_kind=sandbox_kind,
            container_command=_non_empty(
                environ, "CLIX_CONTAINER_COMMAND", "docker"
            ),
            git_command=_non_empty(environ, "CLIX_GIT_COMMAND", "git"),
            log_level=_parse_log_level(environ.get("CLIX_LOG_LEVEL", "")),
        )


def _non_empty(environ: Mapping[str, str], name: str, default: str) -> str:
    value = environ.get(name, "").strip()
    return value or default


def _parse_log_level(value: str) -> int:
    value = value.strip().upper()
    if not value:
        return logging.WARNING
    level = logging.getLevelName(value)
    if not isinstance(level, int):
        raise ConfigError(f"Invalid CLIX_LOG_LEVEL value {value!r}")
    return level
