# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Exception hierarchy for sandbox setup failures.

Every setup-time failure is fatal to the run and is reported to the
caller as one of these exceptions. A sandboxed program exiting non-zero
is not an error: its status is returned by ``Sandbox.run()``.
"""

from clix.errors import ClixError


class SandboxError(ClixError):
    """Base exception for sandbox provisioning and invocation failures."""


class MountError(SandboxError):
    """Raised when a declared mount cannot be resolved."""


class MissingDigestError(MountError):
    """Raised when a cache token is used but no image digest is known."""


class NotAGitRepoError(MountError):
    """Raised when the git-root token is used outside a git repository."""


class ImageNotFoundError(SandboxError):
    """Raised when the local engine has no image matching a reference."""


class ImagePullError(SandboxError):
    """Raised when an image cannot be pulled from its registry."""


class PathTraversalError(SandboxError):
    """Raised when an archive entry would land outside its destination."""


class ExtractionError(SandboxError):
    """Raised when unpacking an image filesystem fails."""


class MissingRootError(SandboxError):
    """Raised when a backend needs an image or root path but has none."""


class UnsupportedFeatureError(SandboxError):
    """Raised when a script uses a feature the backend cannot honor."""


class NoCommandError(SandboxError):
    """Raised when neither an entrypoint nor a program argument is given."""


class LaunchError(SandboxError):
    """Raised when a child process (engine, git, chrooted program) fails
    to start at all."""
