# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Image content addressing via the local container engine's image index.

The image digest keys the per-image cache directories used by
``${cacheDir}`` mounts. Lookups never pull: an image that is not present
locally is an error.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Protocol

from clix.sandbox.errors import ImageNotFoundError, LaunchError


logger = logging.getLogger(__name__)

_DIGEST_PREFIX = "sha256:"


class ImageAddresser(Protocol):
    """Produces a stable content identifier for an image reference."""

    def digest(self, image_ref: str) -> str: ...


class EngineImageIndex:
    """Queries ``<engine> images`` for local image information.

    Attributes:
        container_command: Container runtime command (docker or podman).
    """

    def __init__(self, container_command: str = "docker") -> None:
        self.container_command = container_command

    def digest(self, image_ref: str) -> str:
        """Return the hex digest of a local image.

        Args:
            image_ref: Image reference (e.g. ``python:3.12``).

        Returns:
            Lowercase hex identifier without the ``sha256:`` prefix.

        Raises:
            ImageNotFoundError: If no local image matches.
            LaunchError: If the engine cannot be executed.
        """
        output = self._images("--no-trunc", "--quiet", image_ref)
        lines = output.split()
        if not lines:
            raise ImageNotFoundError(f"Image not found locally: {image_ref}")

        digest = lines[0].lower()
        if digest.startswith(_DIGEST_PREFIX):
            digest = digest[len(_DIGEST_PREFIX) :]
        logger.debug("Image %s has digest %s", image_ref, digest)
        return digest

    def exists(self, tag: str) -> bool:
        """Check whether an image tag is present locally.

        Raises:
            ImageNotFoundError: If the engine query itself fails.
            LaunchError: If the engine cannot be executed.
        """
        return bool(self._images("-q", tag).strip())

    def _images(self, *args: str) -> str:
        cmd = [self.container_command, "images", *args]
        try:
            result = subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise LaunchError(
                f"Cannot run {self.container_command}: {e}"
            ) from e
        except subprocess.CalledProcessError as e:
            error_msg = e.stderr.strip() if e.stderr else str(e)
            raise ImageNotFoundError(
                f"{self.container_command} images failed: {error_msg}"
            ) from e
        return result.stdout
