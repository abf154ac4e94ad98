# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Sandbox provisioning and invocation.

Resolves declared mounts, addresses images by content, provisions chroot
roots from images, and runs programs through one of two backends
(container engine or chroot).
"""

from clix.sandbox.digest import EngineImageIndex, ImageAddresser
from clix.sandbox.errors import (
    ExtractionError,
    ImageNotFoundError,
    ImagePullError,
    LaunchError,
    MissingDigestError,
    MissingRootError,
    MountError,
    NoCommandError,
    NotAGitRepoError,
    PathTraversalError,
    SandboxError,
    UnsupportedFeatureError,
)
from clix.sandbox.invocation import (
    build_engine_args,
    is_interactive,
    redact_command,
)
from clix.sandbox.mounts import MountResolver, find_git_root, needs_digest
from clix.sandbox.rootfs import (
    EngineImagePuller,
    ImagePuller,
    PreparedRoot,
    RootFilesystemProvisioner,
    untar,
)
from clix.sandbox.sandbox import (
    ChrootSandbox,
    ContainerEngineSandbox,
    Sandbox,
    create_sandbox,
)
from clix.sandbox.types import EnvVar, MountSpec, ResolvedMount


__all__ = [
    # sandbox
    "Sandbox",
    "ChrootSandbox",
    "ContainerEngineSandbox",
    "create_sandbox",
    # types
    "EnvVar",
    "MountSpec",
    "ResolvedMount",
    # mounts
    "MountResolver",
    "find_git_root",
    "needs_digest",
    # digest
    "EngineImageIndex",
    "ImageAddresser",
    # rootfs
    "EngineImagePuller",
    "ImagePuller",
    "PreparedRoot",
    "RootFilesystemProvisioner",
    "untar",
    # invocation
    "build_engine_args",
    "is_interactive",
    "redact_command",
    # errors
    "ExtractionError",
    "ImageNotFoundError",
    "ImagePullError",
    "LaunchError",
    "MissingDigestError",
    "MissingRootError",
    "MountError",
    "NoCommandError",
    "NotAGitRepoError",
    "PathTraversalError",
    "SandboxError",
    "UnsupportedFeatureError",
]
