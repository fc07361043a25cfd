# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Command-line entry point.

Exit codes:

* ``0``: clean shutdown, ``--help`` or ``--version``
* ``1``: runtime failure (config, bus, helper, ...)
* ``100``: invalid command-line usage
"""

from __future__ import annotations

import argparse
import dataclasses
import logging
import signal
import sys
from pathlib import Path
from typing import NoReturn

from connman_resolvconf import __version__
from connman_resolvconf.config import Config, ConfigError
from connman_resolvconf.connman import (
    ConnmanError,
    ServiceDirectory,
    connect_system_bus,
)
from connman_resolvconf.daemon import ResolvconfDaemon
from connman_resolvconf.dotenv_loader import load_env_defaults
from connman_resolvconf.logging import configure_logging
from connman_resolvconf.reconciler import Reconciler
from connman_resolvconf.resolvconf import Resolvconf, WriteError


logger = logging.getLogger(__name__)

PROG_NAME = "connman-resolvconf"

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 100


class _ArgumentParser(argparse.ArgumentParser):
    """Argument parser that exits with ``EXIT_USAGE`` on invalid usage."""

    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_USAGE, f"{self.prog}: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog=PROG_NAME,
        description=(
            "Update resolv.conf via resolvconf based on ConnMan "
            "service changes."
        ),
    )
    parser.add_argument(
        "-l",
        "--log-level",
        metavar="LEVEL",
        default=None,
        help=(
            "Log level: trace, debug, info, warn, error "
            "(default: $LOG_LEVEL or info)"
        ),
    )
    parser.add_argument(
        "-s",
        "--syslog",
        action="store_true",
        default=None,
        help="Log to syslog instead of standard error",
    )
    parser.add_argument(
        "-C",
        "--no-cleanup-on-term",
        dest="cleanup_on_term",
        action="store_false",
        default=None,
        help="Leave DNS information in place when terminated",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        metavar="PATH",
        help="Path to config file (default: /etc/xdg/connman-resolvconf/"
        "config.yaml, if present)",
    )
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"{PROG_NAME} {__version__}",
    )
    return parser


def _load_config(args: argparse.Namespace) -> Config:
    """Build the effective configuration, applying command-line overrides.

    Raises:
        ConfigError: If the configuration is invalid.
    """
    config = Config.from_yaml(config_path=args.config)

    overrides = {
        name: value
        for name in ("log_level", "syslog", "cleanup_on_term")
        if (value := getattr(args, name)) is not None
    }
    return dataclasses.replace(config, **overrides)


def run(config: Config) -> None:
    """Run the daemon until it is terminated.

    Raises:
        ConnmanError: If ConnMan cannot be reached at startup.
        WriteError: If the resolvconf helper cannot be found.
    """
    logger.info("Starting %s %s", PROG_NAME, __version__)

    reconciler = Reconciler(Resolvconf(config.resolvconf))
    bus = connect_system_bus()
    directory = ServiceDirectory(bus, timeout=config.bus_timeout_seconds)
    daemon = ResolvconfDaemon(
        directory,
        reconciler,
        cleanup_on_term=config.cleanup_on_term,
        poll_interval=config.poll_interval_seconds,
    )

    def shutdown_handler(signum: int, frame: object) -> None:
        """Handle shutdown signals."""
        daemon.request_stop(signum)

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    daemon.start()
    daemon.run()


def main(argv: list[str] | None = None) -> int:
    """Main entry point.

    Args:
        argv: Command-line arguments. If None, uses sys.argv[1:].

    Returns:
        Exit code (0=success, 1=runtime failure).
    """
    args = _build_parser().parse_args(argv)

    load_env_defaults()

    try:
        config = _load_config(args)
        configure_logging(level=config.log_level, use_syslog=config.syslog)
    except (ConfigError, ValueError, OSError) as e:
        print(f"{PROG_NAME}: {e}", file=sys.stderr)
        return EXIT_FAILURE

    try:
        run(config)
    except (ConnmanError, WriteError) as e:
        logger.error("%s", e)
        if config.syslog:
            print(f"{PROG_NAME}: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except Exception as e:
        logger.exception("Fatal runtime error: %s", e)
        return EXIT_FAILURE

    return EXIT_OK


def cli() -> None:
    """Console script entry point."""
    sys.exit(main())
