#!/usr/bin/env python3
# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""clix -- script entry point.

Delegates to :func:`clix.cli.cli`. Equivalent to ``uv run clix``.
"""

import sys
from pathlib import Path


# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from clix.cli import cli


if __name__ == "__main__":
    cli()
