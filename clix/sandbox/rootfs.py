# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Root filesystem provisioning for the chroot backend.

A root is either an existing local directory (borrowed, never deleted) or
a container image unpacked into a fresh temporary directory (owned,
deleted on release).

Unpacking streams the engine's flattened filesystem export straight into
the tar extractor, so extraction starts before the export finishes::

    <engine> export <container>  --stdout-->  untar() --> /tmp/clix-chroot-*

If either side fails, the other is stopped and the whole operation fails;
a partially populated directory is always removed before the error is
raised.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tarfile
import tempfile
import time
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from pathlib import Path
from types import TracebackType
from typing import IO, Protocol

from clix.sandbox.errors import (
    ExtractionError,
    ImagePullError,
    LaunchError,
    PathTraversalError,
)


logger = logging.getLogger(__name__)

_COPY_CHUNK_SIZE = 1024 * 1024


class ImagePuller(Protocol):
    """Registry client: fetches an image and exports its filesystem."""

    def pull(self, image_ref: str) -> None: ...

    def export(self, image_ref: str) -> AbstractContextManager[IO[bytes]]: ...


class EngineImagePuller:
    """ImagePuller backed by the container engine CLI.

    Attributes:
        container_command: Container runtime command (docker or podman).
    """

    def __init__(self, container_command: str = "docker") -> None:
        self.container_command = container_command

    def pull(self, image_ref: str) -> None:
        """Pull an image into the engine's local store.

        Raises:
            ImagePullError: If the pull fails.
            LaunchError: If the engine cannot be executed.
        """
        logger.info("Pulling image %s", image_ref)
        self._run("pull", image_ref, error=ImagePullError)

    @contextmanager
    def export(self, image_ref: str) -> Iterator[IO[bytes]]:
        """Stream the flattened filesystem of an image as a tar archive.

        A stopped container is created from the image and exported; it is
        removed again when the context exits.

        Yields:
            Binary stream of the export, readable while the export runs.

        Raises:
            ExtractionError: If the export fails.
            LaunchError: If the engine cannot be executed.
        """
        # create requires a command for images without CMD; it never runs
        container_id = self._run(
            "create", image_ref, "true", error=ExtractionError
        ).strip()
        try:
            with tempfile.TemporaryFile() as stderr_file:
                yield from self._stream_export(container_id, stderr_file)
        finally:
            self._remove_container(container_id)

    def _stream_export(
        self, container_id: str, stderr_file: IO[bytes]
    ) -> Iterator[IO[bytes]]:
        try:
            process = subprocess.Popen(
                [self.container_command, "export", container_id],
                stdout=subprocess.PIPE,
                stderr=stderr_file,
            )
        except OSError as e:
            raise LaunchError(
                f"Cannot run {self.container_command}: {e}"
            ) from e

        stdout = process.stdout
        assert stdout is not None
        try:
            yield stdout
            # Drain trailing padding so the producer never sees EPIPE
            while stdout.read(_COPY_CHUNK_SIZE):
                pass
        except BaseException as e:
            process.kill()
            process.wait()
            if process.returncode > 0:
                # The producer failed first; its error is the real cause
                raise ExtractionError(
                    f"{self.container_command} export failed: "
                    f"{_read_error(stderr_file)}"
                ) from e
            raise
        finally:
            stdout.close()

        process.wait()
        if process.returncode != 0:
            raise ExtractionError(
                f"{self.container_command} export failed "
                f"(exit {process.returncode}): {_read_error(stderr_file)}"
            )

    def _remove_container(self, container_id: str) -> None:
        result = subprocess.run(
            [self.container_command, "rm", "-f", container_id],
            capture_output=True,
            text=True,
        )
        if result.returncode != 0:
            logger.warning(
                "Failed to remove export container %s: %s",
                container_id,
                result.stderr.strip(),
            )

    def _run(self, *args: str, error: type[Exception]) -> str:
        cmd = [self.container_command, *args]
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
            raise error(f"{' '.join(cmd[:2])} failed: {error_msg}") from e
        return result.stdout


def _read_error(stderr_file: IO[bytes]) -> str:
    stderr_file.seek(0)
    return stderr_file.read().decode(errors="replace").strip()


def _remove_tree(path: Path) -> None:
    """Delete a temporary root, logging entries that cannot be removed."""

    def warn(function, failed_path, exc):
        logger.warning(
            "Failed to remove temporary root %s: %s: %s",
            path,
            failed_path,
            exc,
        )

    shutil.rmtree(path, onexc=warn)


class PreparedRoot:
    """A directory tree ready to be used as a chroot target.

    Use as a context manager (or call release()) so that owned roots are
    deleted on every exit path::

        with provisioner.prepare(image) as root:
            run_in(root.path)

    Attributes:
        path: Root directory.
        owned: True if the directory was created for this run and must be
            deleted on release.
    """

    def __init__(self, path: Path, *, owned: bool) -> None:
        self.path = path
        self.owned = owned
        self._released = False

    def release(self) -> None:
        """Delete the root if owned. Safe to call more than once."""
        if self._released:
            return
        self._released = True
        if self.owned:
            logger.debug("Removing temporary root %s", self.path)
            _remove_tree(self.path)

    def __enter__(self) -> PreparedRoot:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.release()


class RootFilesystemProvisioner:
    """Produces chroot roots from local directories or container images."""

    def __init__(
        self,
        puller: ImagePuller,
        *,
        temp_dir: Path | None = None,
    ) -> None:
        """Initialize provisioner.

        Args:
            puller: Registry client used for image references.
            temp_dir: Parent for temporary roots (default: system temp).
        """
        self._puller = puller
        self._temp_dir = temp_dir

    def prepare(self, image_ref: str) -> PreparedRoot:
        """Return a root directory for image_ref.

        Args:
            image_ref: Local directory path or container image reference.

        Returns:
            Borrowed root for a local directory, owned root otherwise.

        Raises:
            ImagePullError: If the image cannot be pulled.
            PathTraversalError: If the image contains an escaping entry.
            ExtractionError: If unpacking fails.
        """
        if os.path.isdir(image_ref):
            logger.debug("Using local directory %s as root", image_ref)
            return PreparedRoot(Path(image_ref), owned=False)

        self._puller.pull(image_ref)

        root = Path(tempfile.mkdtemp(prefix="clix-chroot-", dir=self._temp_dir))
        logger.info("Unpacking %s into %s", image_ref, root)
        start_time = time.time()

        try:
            with self._puller.export(image_ref) as stream:
                count = untar(stream, root)
        except (OSError, tarfile.TarError) as e:
            _remove_tree(root)
            raise ExtractionError(
                f"Unpacking image {image_ref!r} failed: {e}"
            ) from e
        except BaseException:
            _remove_tree(root)
            raise

        elapsed = time.time() - start_time
        logger.info("Unpacked %d entries in %.2fs", count, elapsed)
        return PreparedRoot(root, owned=True)


def untar(stream: IO[bytes], dest: Path) -> int:
    """Extract a tar stream into dest in a single pass.

    Every entry must land inside dest, both lexically and after resolving
    symlinks already extracted into its parent directories. Symlink
    targets themselves are recreated verbatim and not checked.

    Args:
        stream: Readable tar stream (compression is auto-detected).
        dest: Existing destination directory.

    Returns:
        Number of entries extracted.

    Raises:
        PathTraversalError: If an entry escapes dest.
        tarfile.TarError: If the archive is malformed.
        OSError: On any filesystem error.
    """
    root = os.path.abspath(dest)
    real_root = os.path.realpath(root)
    count = 0

    with tarfile.open(fileobj=stream, mode="r|*") as archive:
        for member in archive:
            path = _entry_path(root, real_root, member.name)

            if member.isdir():
                os.makedirs(path, mode=0o755, exist_ok=True)
            elif member.isfile():
                _prepare_parent(path)
                source = archive.extractfile(member)
                assert source is not None
                with open(path, "wb") as f:
                    shutil.copyfileobj(source, f, _COPY_CHUNK_SIZE)
                os.chmod(path, member.mode & 0o7777)
            elif member.issym():
                _prepare_parent(path)
                os.symlink(member.linkname, path)
            elif member.islnk():
                target = _entry_path(root, real_root, member.linkname)
                _prepare_parent(path)
                os.link(target, path, follow_symlinks=False)
            else:
                logger.debug(
                    "Skipping unsupported entry %s (type %r)",
                    member.name,
                    member.type,
                )
                continue
            count += 1

    return count


def _entry_path(root: str, real_root: str, name: str) -> str:
    """Join an archive name onto root, refusing anything that escapes."""
    path = os.path.normpath(os.path.join(root, name.lstrip("/")))
    if os.path.commonpath([root, path]) != root:
        raise PathTraversalError(f"Illegal path in image archive: {name!r}")

    if path == root:
        return path

    real_parent = os.path.realpath(os.path.dirname(path))
    if os.path.commonpath([real_root, real_parent]) != real_root:
        raise PathTraversalError(
            f"Image archive entry {name!r} resolves outside the root "
            f"through a symlink"
        )
    return path


def _prepare_parent(path: str) -> None:
    """Create the parent of path and clear any existing non-directory."""
    os.makedirs(os.path.dirname(path), mode=0o755, exist_ok=True)
    if os.path.lexists(path) and not os.path.isdir(path):
        os.unlink(path)
