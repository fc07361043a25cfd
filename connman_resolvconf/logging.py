# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Centralized logging configuration.

Log records go either to standard error or to the local syslog daemon
(facility ``daemon``).

Usage:
    # In the entry point
    from connman_resolvconf.logging import configure_logging
    configure_logging(level="info", use_syslog=True)

    # In library modules
    import logging
    logger = logging.getLogger(__name__)
    logger.info("Adding DNS information for %s", iface)
"""

import logging
import logging.handlers
import os


#: Identifier prepended to syslog messages.
SYSLOG_IDENT = "connman-resolvconf"

_SYSLOG_ADDRESS = "/dev/log"

_LEVEL_ALIASES = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}


def parse_log_level(name: str) -> int:
    """Convert a level name such as ``INFO`` or ``warn`` to a level number.

    Args:
        name: Case-insensitive level name.

    Returns:
        The numeric logging level.

    Raises:
        ValueError: If the name is not a known level.
    """
    try:
        return _LEVEL_ALIASES[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Invalid log level: {name}") from None


def configure_logging(
    level: int | str = logging.INFO,
    use_syslog: bool = False,
    format_string: str | None = None,
) -> None:
    """Configure logging for the application.

    Replaces any handlers on the root logger with a single handler writing
    to standard error or to syslog.

    Args:
        level: Logging level number or name (see ``parse_log_level``).
        use_syslog: Send records to syslog instead of standard error.
        format_string: Custom format string. If None, uses default format.

    Raises:
        ValueError: If *level* is an unknown level name.
        OSError: If the syslog socket cannot be opened.
    """
    if isinstance(level, str):
        level = parse_log_level(level)

    handler: logging.Handler
    if use_syslog:
        handler = logging.handlers.SysLogHandler(
            address=_SYSLOG_ADDRESS,
            facility=logging.handlers.SysLogHandler.LOG_DAEMON,
        )
        handler.ident = f"{SYSLOG_IDENT}[{os.getpid()}]: "
        if format_string is None:
            format_string = "%(message)s"
    else:
        handler = logging.StreamHandler()
        if format_string is None:
            format_string = (
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            )
    handler.setFormatter(logging.Formatter(format_string))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers to avoid duplicates
    for existing_handler in root_logger.handlers[:]:
        root_logger.removeHandler(existing_handler)

    root_logger.addHandler(handler)
