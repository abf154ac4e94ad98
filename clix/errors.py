# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Root exception for clix."""


class ClixError(Exception):
    """Base exception for all clix failures.

    The CLI reports any ClixError on stderr and exits with status 1.
    """
