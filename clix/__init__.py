# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""clix -- run command-line tools inside a sandbox described by a script."""
