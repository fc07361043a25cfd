# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Loader for the environment defaults file.

Distributions keep daemon settings in ``/etc/default/connman-resolvconf``
(shell ``KEY=value`` syntax), e.g.::

    RESOLVCONF=/sbin/resolvconf
    LOG_LEVEL=debug

Variables already present in the environment are **not** overwritten
(``python-dotenv`` respects existing env vars by default), so the service
manager's environment wins over the file.
"""

import logging
from pathlib import Path

from dotenv import load_dotenv


logger = logging.getLogger(__name__)

#: Default location of the environment defaults file.
ENV_DEFAULTS_PATH = Path("/etc/default/connman-resolvconf")

_dotenv_loaded = False


def load_env_defaults(path: Path = ENV_DEFAULTS_PATH) -> None:
    """Load the environment defaults file once, if it exists.

    This function is idempotent: calling it multiple times has no effect
    after the first call.

    Args:
        path: File to load.
    """
    global _dotenv_loaded
    if _dotenv_loaded:
        return

    if path.exists():
        load_dotenv(path)
        logger.debug("Loaded environment defaults from %s", path)

    _dotenv_loaded = True


def reset_dotenv_state() -> None:
    """Reset the loaded state. For testing only."""
    global _dotenv_loaded
    _dotenv_loaded = False
