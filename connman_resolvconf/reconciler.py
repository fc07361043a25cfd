# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Reconciliation of ConnMan service state with resolvconf.

The ``Reconciler`` owns the map of services that currently contribute DNS
configuration and decides, for every snapshot or update, whether the
resolvconf helper has to be called:

* ``observe_snapshot``: full service data (initial listing, or a service
  that just became active).  Identical data is a no-op.
* ``apply_update``: a single changed property of a tracked service.
  Re-announced values are a no-op; otherwise the service's current state
  selects the action (publish, withdraw, or nothing).
* ``teardown_all``: withdraw everything, e.g. on shutdown.

The reconciler is not thread-safe; all calls must come from the thread
running the main loop.
"""

from __future__ import annotations

import logging
from typing import Protocol

from connman_resolvconf.resolvconf import WriteError, render_resolv_conf
from connman_resolvconf.service import (
    ACTIVE_STATES,
    Service,
    ServiceUpdate,
)


logger = logging.getLogger(__name__)


class ReconciliationError(Exception):
    """Raised when a tracked service makes a transition we cannot handle."""


class ResolvconfWriter(Protocol):
    """The subset of ``Resolvconf`` used by the reconciler."""

    def apply(self, interface: str, content: str) -> None: ...

    def remove(self, interface: str) -> None: ...


class Reconciler:
    """Keeps resolvconf in sync with the active ConnMan services.

    Attributes:
        known: Tracked services, keyed by service ID.
        published: IDs whose DNS data is currently registered with
            resolvconf.
    """

    def __init__(self, writer: ResolvconfWriter) -> None:
        self.writer = writer
        self.known: dict[str, Service] = {}
        self.published: set[str] = set()

    def is_tracked(self, service_id: str) -> bool:
        return service_id in self.known

    def _publish(self, service: Service) -> None:
        self.writer.apply(
            service.interface_or_id, render_resolv_conf(service)
        )
        self.published.add(service.id)

    def _withdraw(self, service: Service) -> None:
        self.writer.remove(service.interface_or_id)
        self.published.discard(service.id)

    def observe_snapshot(self, service: Service) -> None:
        """Record full service data, publishing its DNS data if needed.

        If the service was already published under a different interface,
        or no longer has nameservers, the old entry is withdrawn first.

        Args:
            service: Freshly fetched service.

        Raises:
            WriteError: If calling the helper failed.  The service is not
                recorded in that case.
        """
        previous = self.known.get(service.id)
        if previous == service:
            logger.debug("No changes for %s, skipping", service.id)
            return

        if (
            previous is not None
            and service.id in self.published
            and (
                not service.nameservers
                or previous.interface_or_id != service.interface_or_id
            )
        ):
            logger.info(
                "Removing DNS information for %s (%s)",
                previous.interface_or_id,
                service.id,
            )
            self._withdraw(previous)

        if service.nameservers:
            logger.info(
                "Adding DNS information for %s (%s)",
                service.interface_or_id,
                service.id,
            )
            self._publish(service)
        self.known[service.id] = service

    def apply_update(self, service_id: str, update: ServiceUpdate) -> None:
        """Merge a single-property update into a tracked service.

        Updates for services that are not tracked are ignored.

        Args:
            service_id: ID of the service that emitted the update.
            update: Decoded property change.

        Raises:
            WriteError: If calling the helper failed.
            ReconciliationError: If the service moved to a state that a
                tracked service should never reach directly.
        """
        service = self.known.get(service_id)
        if service is None:
            logger.debug("Ignoring update for unknown service: %s", service_id)
            return

        if not service.merge(update):
            return

        iface = service.interface_or_id
        if service.state in ACTIVE_STATES and service.nameservers:
            logger.info(
                "Updating DNS information for %s (%s)", iface, service.id
            )
            self._publish(service)
        elif service.state in ACTIVE_STATES:
            if service_id in self.published:
                logger.info(
                    "Removing DNS information for %s (%s), no nameservers",
                    iface,
                    service.id,
                )
                self._withdraw(service)
        elif service.state == "disconnect":
            logger.info(
                "Removing DNS information for %s (%s)", iface, service.id
            )
            self._withdraw(service)
            del self.known[service_id]
        elif service.state == "configuration":
            pass
        else:
            raise ReconciliationError(
                f"Unexpected service update in state {service.state} "
                f"for {service.id}: {update!r}"
            )

    def teardown_all(self) -> None:
        """Remove DNS information of every tracked service.

        Failures are logged and do not stop the removal of the remaining
        services.  The tracked map is empty afterwards.
        """
        for service in list(self.known.values()):
            iface = service.interface_or_id
            logger.info(
                "Removing DNS information for %s (%s)", iface, service.id
            )
            try:
                self.writer.remove(iface)
            except WriteError as e:
                logger.warning("%s", e)
        self.known.clear()
        self.published.clear()
