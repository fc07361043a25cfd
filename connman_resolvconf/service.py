# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""ConnMan service model and property-change decoding.

A ``Service`` is one connection that ConnMan currently knows about.  A
``PropertyChanged`` notification carries exactly one changed property; it is
decoded into one of the ``ServiceUpdate`` variants:

* ``StateChanged``: the ``State`` property
* ``DomainsChanged``: the ``Domains`` property
* ``NameserversChanged``: the ``Nameservers`` property
* ``Unrecognized``: any other property (ignored by the reconciler)
"""

from __future__ import annotations

from dataclasses import dataclass, field


#: States in which a service contributes DNS configuration.
ACTIVE_STATES = frozenset({"ready", "online"})


class DecodeError(ValueError):
    """Raised when a known property carries a value of the wrong shape."""


@dataclass
class Service:
    """A network service as reported by ConnMan.

    Two services compare equal when their id and all mutable fields match;
    the reconciler relies on this to skip redundant writes.

    Attributes:
        id: Service ID (the last segment of the service object path).
        state: Connection state (``idle``, ``failure``, ``association``,
            ``configuration``, ``ready``, ``disconnect`` or ``online``).
        interface: Network interface name, if ConnMan reported one.
        nameservers: Currently active nameservers, in order.
        domains: Currently used search domains, in order.
    """

    id: str
    state: str
    interface: str | None = None
    nameservers: list[str] = field(default_factory=list)
    domains: list[str] = field(default_factory=list)

    @property
    def interface_or_id(self) -> str:
        """Name under which DNS data is registered with resolvconf."""
        return self.interface or self.id

    @property
    def is_active(self) -> bool:
        return self.state in ACTIVE_STATES

    def merge(self, update: ServiceUpdate) -> bool:
        """Apply a single-property update in place.

        Args:
            update: Decoded property change.

        Returns:
            True if a field actually changed, False if the update carried
            the value already recorded or was not recognized.
        """
        if isinstance(update, StateChanged):
            if self.state == update.state:
                return False
            self.state = update.state
        elif isinstance(update, DomainsChanged):
            if self.domains == update.domains:
                return False
            self.domains = list(update.domains)
        elif isinstance(update, NameserversChanged):
            if self.nameservers == update.nameservers:
                return False
            self.nameservers = list(update.nameservers)
        else:
            return False
        return True


@dataclass(frozen=True)
class StateChanged:
    state: str


@dataclass(frozen=True)
class DomainsChanged:
    domains: list[str]


@dataclass(frozen=True)
class NameserversChanged:
    nameservers: list[str]


@dataclass(frozen=True)
class Unrecognized:
    """A property this program does not use."""

    name: str


ServiceUpdate = (
    StateChanged | DomainsChanged | NameserversChanged | Unrecognized
)


def _as_string(name: str, value: object) -> str:
    if not isinstance(value, str):
        raise DecodeError(
            f"Property '{name}' must be a string, got {type(value).__name__}"
        )
    return str(value)


def _as_string_list(name: str, value: object) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise DecodeError(
            f"Property '{name}' must be a list of strings, "
            f"got {type(value).__name__}"
        )
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise DecodeError(
                f"Property '{name}' must contain only strings, "
                f"got {type(item).__name__}"
            )
        items.append(str(item))
    return items


def decode_update(name: str, value: object) -> ServiceUpdate:
    """Decode a ``PropertyChanged`` payload into a ``ServiceUpdate``.

    Unknown property names never fail, so new ConnMan properties do not
    break the daemon.

    Args:
        name: Property name from the notification.
        value: Property value (D-Bus types are ``str``/``list`` subclasses).

    Returns:
        The matching update variant.

    Raises:
        DecodeError: If a known property has a malformed value.
    """
    if name == "State":
        return StateChanged(_as_string(name, value))
    if name == "Domains":
        return DomainsChanged(_as_string_list(name, value))
    if name == "Nameservers":
        return NameserversChanged(_as_string_list(name, value))
    return Unrecognized(str(name))
