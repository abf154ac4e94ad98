# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Script model and YAML loader.

A clix script is a YAML document, usually made executable with a
``#!/usr/bin/env clix`` shebang (which YAML treats as a comment)::

    #!/usr/bin/env clix
    image: python:3.12
    entrypoint: python
    mounts:
      - hostPath: ${cacheDir}/pip
        sandboxPath: /root/.cache/pip
      - hostPath: git.repoRoot(cwd)
    env:
      - name: PYTHONDONTWRITEBYTECODE
        value: "1"

Other top-level keys: ``go`` (``run``, ``version``) to run a Go package,
and ``build`` (``git``, ``branch``, ``dockerfile``) to build the image from
a git repository.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from clix.errors import ClixError
from clix.sandbox.types import EnvVar, MountSpec


logger = logging.getLogger(__name__)


class ScriptError(ClixError):
    """Raised when a script cannot be read or is invalid."""


@dataclass(frozen=True)
class GoConfig:
    """Go package to run with ``go run``.

    Attributes:
        run: Package path (module path or local directory).
        version: Optional version suffix (``pkg@version``).
    """

    run: str
    version: str = ""

    @property
    def target(self) -> str:
        """Package argument for ``go run``."""
        if self.version:
            return f"{self.run}@{self.version}"
        return self.run


@dataclass(frozen=True)
class BuildConfig:
    """Git repository to build the script image from.

    Attributes:
        git: Repository URL.
        branch: Branch to build (default: remote HEAD).
        dockerfile: Dockerfile path inside the repository.
    """

    git: str
    branch: str = ""
    dockerfile: str = "Dockerfile"


@dataclass(frozen=True)
class ScriptConfig:
    """Resolved description of one execution.

    Attributes:
        image: Image reference, or a local root directory for chroot.
        entrypoint: Program override.
        mounts: Declared mounts, in order.
        env: Environment variables, in order.
        go: Go delegation settings.
        build: Image build settings.
    """

    image: str | None = None
    entrypoint: str | None = None
    mounts: tuple[MountSpec, ...] = ()
    env: tuple[EnvVar, ...] = ()
    go: GoConfig | None = None
    build: BuildConfig | None = None

    def with_image(self, image: str) -> ScriptConfig:
        """Return a copy with a different image."""
        return dataclasses.replace(self, image=image)


def load_script(path: Path) -> ScriptConfig:
    """Read and parse a script file.

    Raises:
        ScriptError: If the file cannot be read or is invalid.
    """
    try:
        data = path.read_text()
    except OSError as e:
        raise ScriptError(f"Error reading script file {path}: {e}") from e
    return parse_script(data, source=str(path))


def parse_script(data: str, *, source: str = "<script>") -> ScriptConfig:
    """Parse script YAML text.

    Args:
        data: YAML document.
        source: Name used in error messages.

    Raises:
        ScriptError: If the YAML is malformed or has invalid fields.
    """
    try:
        raw = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise ScriptError(f"Error parsing script file {source}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ScriptError(f"{source}: top level must be a mapping")

    script = ScriptConfig(
        image=_optional_str(raw, "image", source),
        entrypoint=_optional_str(raw, "entrypoint", source),
        mounts=tuple(_parse_mounts(raw.get("mounts"), source)),
        env=tuple(_parse_env(raw.get("env"), source)),
        go=_parse_go(raw.get("go"), source),
        build=_parse_build(raw.get("build"), source),
    )
    # Keys only: env values must not reach the log
    logger.debug(
        "Loaded script %s (keys: %s)",
        source,
        ", ".join(sorted(map(str, raw))) or "none",
    )
    return script


def _optional_str(raw: dict[str, Any], key: str, source: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ScriptError(f"{source}: '{key}' must be a string")
    return value or None


def _required_str(raw: dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not isinstance(value, str) or not value:
        raise ScriptError(f"{where}: '{key}' is required and must be a string")
    return value


def _list_of_mappings(value: object, key: str, source: str) -> list[dict]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ScriptError(f"{source}: '{key}' must be a list")
    for i, item in enumerate(value):
        if not isinstance(item, dict):
            raise ScriptError(f"{source}: {key}[{i}] must be a mapping")
    return value


def _parse_mounts(value: object, source: str) -> list[MountSpec]:
    mounts = []
    for i, item in enumerate(_list_of_mappings(value, "mounts", source)):
        where = f"{source}: mounts[{i}]"
        sandbox_path = item.get("sandboxPath") or ""
        if not isinstance(sandbox_path, str):
            raise ScriptError(f"{where}: 'sandboxPath' must be a string")
        mounts.append(
            MountSpec(
                host_path=_required_str(item, "hostPath", where),
                sandbox_path=sandbox_path,
            )
        )
    return mounts


def _parse_env(value: object, source: str) -> list[EnvVar]:
    env = []
    for i, item in enumerate(_list_of_mappings(value, "env", source)):
        where = f"{source}: env[{i}]"
        raw_value = item.get("value", "")
        if raw_value is None:
            raw_value = ""
        elif isinstance(raw_value, bool):
            raw_value = "true" if raw_value else "false"
        elif isinstance(raw_value, (int, float)):
            raw_value = str(raw_value)
        elif not isinstance(raw_value, str):
            raise ScriptError(f"{where}: 'value' must be a scalar")
        env.append(
            EnvVar(name=_required_str(item, "name", where), value=raw_value)
        )
    return env


def _parse_go(value: object, source: str) -> GoConfig | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ScriptError(f"{source}: 'go' must be a mapping")
    version = value.get("version") or ""
    if not isinstance(version, str):
        version = str(version)
    return GoConfig(
        run=_required_str(value, "run", f"{source}: go"), version=version
    )


def _parse_build(value: object, source: str) -> BuildConfig | None:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ScriptError(f"{source}: 'build' must be a mapping")
    where = f"{source}: build"
    branch = value.get("branch") or ""
    dockerfile = value.get("dockerfile") or "Dockerfile"
    if not isinstance(branch, str) or not isinstance(dockerfile, str):
        raise ScriptError(f"{where}: 'branch' and 'dockerfile' must be strings")
    return BuildConfig(
        git=_required_str(value, "git", where),
        branch=branch,
        dockerfile=dockerfile,
    )
