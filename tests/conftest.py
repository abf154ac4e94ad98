# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from clix.config import reset_dotenv_state
from clix.logging import EnvValueFilter


@pytest.fixture(autouse=True)
def _isolate_process_state() -> Iterator[None]:
    """Reset masked env values, dotenv state and root logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    EnvValueFilter.clear()
    reset_dotenv_state()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)


@pytest.fixture
def write_script(tmp_path: Path):
    """Write a script file and return its path."""

    def _write(content: str, name: str = "tool.yaml") -> Path:
        path = tmp_path / name
        path.write_text(content)
        return path

    return _write
