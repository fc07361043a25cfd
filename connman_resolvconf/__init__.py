# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Keep resolv.conf in sync with ConnMan's active services.

Listens to ConnMan on the system D-Bus and publishes the nameservers and
search domains of every connected service through ``resolvconf(8)``.
"""

from importlib.metadata import PackageNotFoundError, version


try:
    __version__ = version("connman-resolvconf")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0+unknown"
