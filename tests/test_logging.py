# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for clix/logging.py."""

import logging

import pytest

from clix.logging import EnvValueFilter, configure_logging
from clix.sandbox.types import EnvVar


def _record(msg: str, *args: object) -> logging.LogRecord:
    return logging.LogRecord(
        name="clix.test",
        level=logging.WARNING,
        pathname="",
        lineno=0,
        msg=msg,
        args=args,
        exc_info=None,
    )


class TestEnvValueFilter:
    """Tests for EnvValueFilter."""

    def test_never_suppresses(self) -> None:
        """Filter always keeps the record."""
        EnvValueFilter.add_values(["ghp_abcdef123456"])

        assert EnvValueFilter().filter(_record("plain")) is True

    def test_untouched_without_values(self) -> None:
        record = _record("value is %s", "hunter2hunter2")

        EnvValueFilter().filter(record)

        assert record.msg == "value is %s"
        assert record.args == ("hunter2hunter2",)

    def test_masks_message_text(self) -> None:
        EnvValueFilter.add_values(["ghp_abcdef123456"])
        record = _record("token ghp_abcdef123456 rejected")

        EnvValueFilter().filter(record)

        assert record.getMessage() == "token [REDACTED] rejected"

    def test_masks_formatted_arguments(self) -> None:
        """Arguments are merged into the message before masking."""
        EnvValueFilter.add_values(["password123"])
        record = _record("%s exited %d", "password123", 3)

        EnvValueFilter().filter(record)

        assert record.msg == "[REDACTED] exited 3"
        assert record.args is None

    def test_masks_values_inside_reprs(self) -> None:
        """A value nested in a dataclass repr is masked too."""
        EnvValueFilter.add_values(["ghp_abcdef123456"])
        env = (EnvVar(name="TOKEN", value="ghp_abcdef123456"),)
        record = _record("env: %r", env)

        EnvValueFilter().filter(record)

        assert "ghp_abcdef123456" not in record.getMessage()
        assert "TOKEN" in record.getMessage()
        assert "[REDACTED]" in record.getMessage()

    def test_overlapping_values(self) -> None:
        """The longer of two overlapping values is masked whole."""
        EnvValueFilter.add_values(["abcdefgh", "abcdefgh-ijkl"])
        record = _record("got abcdefgh-ijkl and abcdefgh")

        EnvValueFilter().filter(record)

        assert record.msg == "got [REDACTED] and [REDACTED]"

    def test_short_values_ignored(self) -> None:
        """Flags and small numbers stay readable."""
        EnvValueFilter.add_values(["1", "true", "", "long-enough"])

        assert EnvValueFilter._values == ["long-enough"]

    def test_values_accumulate_without_duplicates(self) -> None:
        EnvValueFilter.add_values(["first-value"])
        EnvValueFilter.add_values(["second-value-x", "first-value"])

        assert EnvValueFilter._values == ["second-value-x", "first-value"]

    def test_clear(self) -> None:
        EnvValueFilter.add_values(["secret-one"])
        EnvValueFilter.clear()

        assert EnvValueFilter._values == []


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_default_level(self) -> None:
        """Only warnings and above by default."""
        configure_logging()

        assert logging.getLogger().level == logging.WARNING

    def test_sets_log_level(self) -> None:
        configure_logging(level=logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG

    def test_single_masking_handler(self) -> None:
        """Repeated calls leave exactly one handler with the filter."""
        configure_logging()
        configure_logging()

        handlers = logging.getLogger().handlers
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert any(isinstance(f, EnvValueFilter) for f in handlers[0].filters)

    def test_custom_format(self) -> None:
        configure_logging(format_string="%(message)s")

        formatter = logging.getLogger().handlers[0].formatter
        assert formatter is not None
        assert formatter._fmt == "%(message)s"

    def test_output_prefixed_and_masked(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        """Messages go to stderr with the clix prefix and no env values."""
        configure_logging()
        EnvValueFilter.add_values(["s3cr3t-value"])

        logging.getLogger("clix.test").warning(
            "bad env %r", {"API_KEY": "s3cr3t-value"}
        )

        err = capsys.readouterr().err
        assert "clix: WARNING: bad env {'API_KEY': '[REDACTED]'}" in err
        assert "s3cr3t-value" not in err
