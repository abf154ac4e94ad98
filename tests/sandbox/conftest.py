# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures for sandbox tests."""

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from clix.sandbox.digest import EngineImageIndex
from clix.sandbox.mounts import MountResolver


@pytest.fixture
def home_dir(tmp_path: Path) -> Path:
    """Fake home directory of the invoking user."""
    home = tmp_path / "home" / "u"
    home.mkdir(parents=True)
    return home


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    """User cache root (not created up front)."""
    return tmp_path / "cache"


@pytest.fixture
def resolver(cache_root: Path, home_dir: Path) -> MountResolver:
    return MountResolver(cache_root, home_dir)


@pytest.fixture
def fake_addresser() -> MagicMock:
    """Image index mock reporting digest ``mocksha256`` for any image."""
    addresser = MagicMock(spec=EngineImageIndex)
    addresser.digest.return_value = "mocksha256"
    return addresser
