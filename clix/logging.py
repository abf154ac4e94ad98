# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Logging configuration for the clix CLI.

clix writes its own diagnostics to stderr, interleaved with the output of
the sandboxed program, so the default level is WARNING.

Script environment values are usually credentials handed to the sandboxed
tool. Once a script is loaded its values are registered with
EnvValueFilter, which masks them in every formatted message, whatever
object the value was interpolated from.

Usage:
    # In the entry point
    from clix.logging import configure_logging
    configure_logging(level=logging.INFO)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
"""

import logging
from collections.abc import Iterable
from typing import ClassVar


REDACTED = "[REDACTED]"

#: Values shorter than this (flags, numbers) are left visible.
MIN_MASKED_LENGTH = 8


class EnvValueFilter(logging.Filter):
    """Masks registered environment values in formatted log messages.

    The message is formatted here, so values reaching the log through a
    container's repr are masked as well as plain string arguments.
    """

    # Longest first, so a value containing another is masked whole
    _values: ClassVar[list[str]] = []

    def filter(self, record: logging.LogRecord) -> bool:
        """Mask values in place. Never suppresses the record."""
        if not self._values:
            return True
        message = record.getMessage()
        for value in self._values:
            message = message.replace(value, REDACTED)
        record.msg = message
        record.args = None
        return True

    @classmethod
    def add_values(cls, values: Iterable[str]) -> None:
        """Register environment values to mask.

        Values shorter than MIN_MASKED_LENGTH are ignored.
        """
        known = set(cls._values)
        known.update(v for v in values if len(v) >= MIN_MASKED_LENGTH)
        cls._values = sorted(known, key=len, reverse=True)

    @classmethod
    def clear(cls) -> None:
        """Forget all registered values. Used by tests."""
        cls._values = []


def configure_logging(
    level: int = logging.WARNING,
    format_string: str | None = None,
) -> None:
    """Configure the root logger with one masking stderr handler.

    Args:
        level: Logging level.
        format_string: Custom format string. If None, uses
            ``clix: <level>: <message>``.
    """
    if format_string is None:
        format_string = "clix: %(levelname)s: %(message)s"

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format_string))
    handler.addFilter(EnvValueFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)
    root_logger.addHandler(handler)
