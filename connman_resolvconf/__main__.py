# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Allow running as ``python -m connman_resolvconf``."""

from connman_resolvconf.cli import cli


if __name__ == "__main__":
    cli()
