# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Daemon configuration.

Settings come from four layers, highest precedence first:

1. Command-line flags (applied by ``connman_resolvconf.cli``)
2. Environment variables ``RESOLVCONF`` and ``LOG_LEVEL``
3. An optional YAML file, by default
   ``$XDG_CONFIG_DIRS/connman-resolvconf/config.yaml``
   (typically ``/etc/xdg/connman-resolvconf/config.yaml``)
4. Built-in defaults

``!env`` tags in the YAML file resolve values from environment variables::

    resolvconf: !env RESOLVCONF_PATH
    log_level: debug
    syslog: true
    cleanup_on_term: true
    bus_timeout_seconds: 5
    poll_interval_seconds: 1
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar, overload

import yaml
from platformdirs import site_config_path

from connman_resolvconf.resolvconf import DEFAULT_RESOLVCONF


logger = logging.getLogger(__name__)

#: Application name for XDG path resolution.
_APP_NAME = "connman-resolvconf"

#: Environment variable overriding the helper path.
ENV_RESOLVCONF = "RESOLVCONF"

#: Environment variable overriding the default log level.
ENV_LOG_LEVEL = "LOG_LEVEL"

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})


def get_config_path() -> Path:
    """Return the default config file path.

    Uses XDG: ``$XDG_CONFIG_DIRS/connman-resolvconf/config.yaml``
    (typically ``/etc/xdg/connman-resolvconf/config.yaml``).

    Returns:
        Path to the config file.
    """
    return site_config_path(_APP_NAME) / "config.yaml"


class ConfigError(Exception):
    """Raised when the configuration cannot be loaded."""


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)  # type: ignore[arg-type]
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value resolution
# ---------------------------------------------------------------------------


def _coerce_bool(value: object) -> bool:
    """Coerce a value to bool, handling string representations."""
    if isinstance(value, bool):
        return value
    s = str(value).lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"Cannot convert {value!r} to bool")


def _raw_resolve(value: object) -> str | None:
    """Resolve an ``_EnvVar`` to its string value, or stringify literals.

    Returns None if the value is None or the env var is not set.
    """
    if isinstance(value, _EnvVar):
        return os.environ.get(value.var_name)
    if value is None:
        return None
    return str(value)


T = TypeVar("T")


@overload
def _resolve(value: object, coerce: type[T], *, default: T) -> T: ...


@overload
def _resolve(value: object, coerce: type[T]) -> T | None: ...


def _resolve(
    value: object,
    coerce: type[Any],
    *,
    default: object = None,
) -> Any:
    """Resolve a YAML value, handling ``!env`` tags and type coercion.

    Args:
        value: Raw value from YAML (may be ``_EnvVar``, None, or a
            literal already parsed by PyYAML).
        coerce: Target type (``str``, ``float``, ``bool``).
        default: Default when value is absent.

    Returns:
        The resolved, coerced value, or *default* when absent.

    Raises:
        ConfigError: If the value cannot be coerced.
    """
    if not isinstance(value, _EnvVar) and value is not None:
        if coerce is bool:
            return _coerce_bool(value)
        if isinstance(value, coerce) and not isinstance(value, bool):
            return value

    resolved = _raw_resolve(value)
    if resolved is None or resolved == "":
        return default

    if coerce is bool:
        return _coerce_bool(resolved)
    try:
        return coerce(resolved)
    except ValueError as e:
        raise ConfigError(
            f"Cannot convert {resolved!r} to {coerce.__name__}"
        ) from e


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Config:
    """Daemon settings.

    Attributes:
        resolvconf: Path or name of the resolvconf helper.
        log_level: Log level name.
        syslog: Log to syslog instead of standard error.
        cleanup_on_term: Remove all contributed DNS information on
            SIGTERM/SIGINT.
        bus_timeout_seconds: Timeout for D-Bus method calls.
        poll_interval_seconds: Maximum delay between a termination signal
            and the start of shutdown.
    """

    resolvconf: str = DEFAULT_RESOLVCONF
    log_level: str = "INFO"
    syslog: bool = False
    cleanup_on_term: bool = True
    bus_timeout_seconds: float = 5.0
    poll_interval_seconds: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.resolvconf:
            raise ValueError("Resolvconf helper path must not be empty")
        if self.bus_timeout_seconds <= 0:
            raise ValueError(
                f"Bus timeout must be > 0s: {self.bus_timeout_seconds}"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError(
                f"Poll interval must be > 0s: {self.poll_interval_seconds}"
            )

    @classmethod
    def from_yaml(cls, config_path: Path | None = None) -> "Config":
        """Load configuration from a YAML file and the environment.

        Args:
            config_path: Config file to read.  If None, the default path is
                used when it exists; otherwise only the environment and
                built-in defaults apply.

        Returns:
            The loaded configuration.

        Raises:
            ConfigError: If the file is missing (when given explicitly),
                unreadable, or contains invalid values.
        """
        raw: dict[str, Any] = {}
        if config_path is None:
            default_path = get_config_path()
            if default_path.exists():
                raw = _load_yaml(default_path)
        else:
            if not config_path.exists():
                raise ConfigError(f"Config file not found: {config_path}")
            raw = _load_yaml(config_path)

        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Config":
        """Build configuration from parsed YAML and the environment.

        Raises:
            ConfigError: If a value is invalid.
        """
        unknown = set(raw) - {
            "resolvconf",
            "log_level",
            "syslog",
            "cleanup_on_term",
            "bus_timeout_seconds",
            "poll_interval_seconds",
        }
        if unknown:
            logger.warning(
                "Ignoring unknown config keys: %s", ", ".join(sorted(unknown))
            )

        defaults = cls()
        resolvconf = os.environ.get(ENV_RESOLVCONF) or _resolve(
            raw.get("resolvconf"), str, default=defaults.resolvconf
        )
        log_level = os.environ.get(ENV_LOG_LEVEL) or _resolve(
            raw.get("log_level"), str, default=defaults.log_level
        )

        try:
            return cls(
                resolvconf=resolvconf,
                log_level=log_level,
                syslog=_resolve(
                    raw.get("syslog"), bool, default=defaults.syslog
                ),
                cleanup_on_term=_resolve(
                    raw.get("cleanup_on_term"),
                    bool,
                    default=defaults.cleanup_on_term,
                ),
                bus_timeout_seconds=_resolve(
                    raw.get("bus_timeout_seconds"),
                    float,
                    default=defaults.bus_timeout_seconds,
                ),
                poll_interval_seconds=_resolve(
                    raw.get("poll_interval_seconds"),
                    float,
                    default=defaults.poll_interval_seconds,
                ),
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e


def _load_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML config file into a mapping.

    Raises:
        ConfigError: If the file cannot be read or is not a mapping.
    """
    try:
        with path.open() as f:
            raw = yaml.load(f, Loader=_make_loader())  # noqa: S506
    except OSError as e:
        raise ConfigError(f"Could not read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(
            f"Config file {path} must contain a mapping, "
            f"got {type(raw).__name__}"
        )
    logger.debug("Loaded config from %s", path)
    return raw
