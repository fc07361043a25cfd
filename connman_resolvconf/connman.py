# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""ConnMan service directory client.

Talks to ConnMan (``net.connman``) on the system D-Bus:

* ``net.connman.Manager.GetServices`` returns every known service as
  ``(object path, property dict)`` pairs.
* ``net.connman.Service.PropertyChanged`` is emitted by a service object
  whenever one of its properties changes.

D-Bus values (``dbus.String``, ``dbus.Array``, ``dbus.Dictionary``) are
converted to plain Python types before they reach the ``Service`` model.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import dbus
import dbus.exceptions
from dbus.mainloop.glib import DBusGMainLoop

from connman_resolvconf.service import (
    ACTIVE_STATES,
    DecodeError,
    Service,
    ServiceUpdate,
    Unrecognized,
    decode_update,
)


logger = logging.getLogger(__name__)

BUS_NAME = "net.connman"
MANAGER_PATH = "/"
MANAGER_IFACE = "net.connman.Manager"
SERVICE_IFACE = "net.connman.Service"
SERVICE_PATH_PREFIX = "/net/connman/service/"

#: Default timeout for D-Bus method calls, in seconds.
DEFAULT_TIMEOUT = 5.0

UpdateCallback = Callable[[str, ServiceUpdate], None]


class ConnmanError(Exception):
    """Base exception for service directory errors."""


class TransportError(ConnmanError):
    """Raised when the bus or ConnMan cannot be reached."""


class MalformedEntryError(ConnmanError):
    """Raised when a service entry cannot be converted to a ``Service``."""


class ServiceNotFoundError(ConnmanError):
    """Raised when ConnMan does not know the requested service."""


def connect_system_bus() -> dbus.Bus:
    """Connect to the system bus with GLib main loop integration.

    Returns:
        The system bus connection.

    Raises:
        TransportError: If the connection cannot be established.
    """
    DBusGMainLoop(set_as_default=True)
    try:
        return dbus.SystemBus()
    except dbus.exceptions.DBusException as e:
        raise TransportError(
            f"Failed to connect to the system D-Bus: {e}"
        ) from e


def service_id_from_path(path: str) -> str:
    """Return the service ID of a ConnMan service object path.

    Raises:
        MalformedEntryError: If *path* is not a service path.
    """
    path = str(path)
    if not path.startswith(SERVICE_PATH_PREFIX) or path == SERVICE_PATH_PREFIX:
        raise MalformedEntryError(
            f"Expected path with prefix {SERVICE_PATH_PREFIX}, but got {path}"
        )
    return path[len(SERVICE_PATH_PREFIX) :]


def _string_list(value: object) -> list[str]:
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if isinstance(item, str)]
    return []


def service_from_entry(path: str, props: dict[str, Any]) -> Service:
    """Convert a ``GetServices`` entry into a ``Service``.

    Args:
        path: Service object path.
        props: Service property dictionary.

    Returns:
        The converted service.

    Raises:
        MalformedEntryError: If the path is outside the service namespace
            or the ``State`` property is missing.
    """
    service_id = service_id_from_path(path)

    state = props.get("State")
    if not isinstance(state, str):
        raise MalformedEntryError(f"{path} is missing property 'State'")

    interface = None
    ethernet = props.get("Ethernet")
    if isinstance(ethernet, dict):
        value = ethernet.get("Interface")
        if isinstance(value, str) and value:
            interface = str(value)

    return Service(
        id=service_id,
        state=str(state),
        interface=interface,
        nameservers=_string_list(props.get("Nameservers")),
        domains=_string_list(props.get("Domains")),
    )


class ServiceDirectory:
    """Queries ConnMan for services and subscribes to their changes.

    Attributes:
        timeout: Timeout for method calls, in seconds.
    """

    def __init__(
        self, bus: dbus.Bus, timeout: float = DEFAULT_TIMEOUT
    ) -> None:
        """Initialize the client.

        Args:
            bus: Connected D-Bus (normally the system bus).
            timeout: Timeout for method calls, in seconds.
        """
        self._bus = bus
        self.timeout = timeout
        manager = bus.get_object(BUS_NAME, MANAGER_PATH, introspect=False)
        self._manager = dbus.Interface(manager, MANAGER_IFACE)

    def _get_services(self) -> list[tuple[str, dict[str, Any]]]:
        try:
            entries = self._manager.GetServices(timeout=self.timeout)
        except dbus.exceptions.DBusException as e:
            raise TransportError(
                f"Failed to call {MANAGER_IFACE}.GetServices: {e}"
            ) from e
        return [(str(path), props) for path, props in entries]

    def list_active(self) -> list[Service]:
        """Return all services in the ``ready`` or ``online`` state.

        Entries that cannot be converted are logged and skipped.

        Raises:
            TransportError: If ConnMan cannot be queried.
        """
        services: list[Service] = []
        for path, props in self._get_services():
            try:
                service = service_from_entry(path, props)
            except MalformedEntryError as e:
                logger.warning("%s", e)
                continue
            if service.state in ACTIVE_STATES:
                services.append(service)
        return services

    def get(self, service_id: str) -> Service:
        """Fetch a single service by ID.

        Raises:
            ServiceNotFoundError: If ConnMan does not list the service.
            MalformedEntryError: If the entry cannot be converted.
            TransportError: If ConnMan cannot be queried.
        """
        wanted = f"{SERVICE_PATH_PREFIX}{service_id}"
        for path, props in self._get_services():
            if path == wanted:
                return service_from_entry(path, props)
        raise ServiceNotFoundError(f"No such service found: {service_id}")

    def subscribe(self, callback: UpdateCallback) -> Any:
        """Call *callback* for every recognized service property change.

        The callback receives the service ID and the decoded update.  It
        runs in the main loop, one notification at a time, in delivery
        order.  Notifications with unexpected paths or malformed values
        are logged and dropped.

        Args:
            callback: Function called as ``callback(service_id, update)``.

        Returns:
            Signal match handle; call its ``remove()`` to unsubscribe.
        """

        def on_property_changed(
            name: str, value: object, path: str | None = None
        ) -> None:
            if path is None:
                logger.error("Got D-Bus message without a path")
                return
            try:
                service_id = service_id_from_path(path)
            except MalformedEntryError:
                logger.warning(
                    "Received D-Bus message with unexpected path: %s", path
                )
                return
            try:
                update = decode_update(str(name), value)
            except DecodeError as e:
                logger.warning("Dropping update for %s: %s", service_id, e)
                return
            if isinstance(update, Unrecognized):
                return
            logger.debug("Received PropertyChanged for %s: %r", path, update)
            callback(service_id, update)

        return self._bus.add_signal_receiver(
            on_property_changed,
            signal_name="PropertyChanged",
            dbus_interface=SERVICE_IFACE,
            bus_name=BUS_NAME,
            path_keyword="path",
        )
