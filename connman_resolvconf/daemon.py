# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Daemon lifecycle.

``ResolvconfDaemon`` ties the ConnMan client to the reconciler:

1. ``start()`` feeds every active service into the reconciler and then
   subscribes to ``PropertyChanged`` notifications.
2. ``run()`` runs the GLib main loop.  D-Bus notifications are dispatched
   from this loop, one at a time, so the reconciler never sees concurrent
   calls.  A periodic timeout checks whether a termination signal arrived.
3. ``shutdown()`` unsubscribes and, if enabled, removes all DNS information
   contributed by this daemon.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from gi.repository import GLib

from connman_resolvconf.connman import ConnmanError, UpdateCallback
from connman_resolvconf.reconciler import Reconciler, ReconciliationError
from connman_resolvconf.resolvconf import WriteError
from connman_resolvconf.service import (
    ACTIVE_STATES,
    Service,
    ServiceUpdate,
    StateChanged,
)


logger = logging.getLogger(__name__)


class ServiceSource(Protocol):
    """The subset of ``ServiceDirectory`` used by the daemon."""

    def list_active(self) -> list[Service]: ...

    def get(self, service_id: str) -> Service: ...

    def subscribe(self, callback: UpdateCallback) -> Any: ...


class ResolvconfDaemon:
    """Keeps resolvconf synchronized with ConnMan until told to stop.

    Attributes:
        directory: ConnMan service directory.
        reconciler: Reconciler owning the tracked services.
        cleanup_on_term: Remove contributed DNS information on shutdown.
        poll_interval: Seconds between checks for a pending stop request.
    """

    def __init__(
        self,
        directory: ServiceSource,
        reconciler: Reconciler,
        cleanup_on_term: bool = True,
        poll_interval: float = 1.0,
    ) -> None:
        self.directory = directory
        self.reconciler = reconciler
        self.cleanup_on_term = cleanup_on_term
        self.poll_interval = poll_interval
        self._subscription: Any = None
        self._stop_requested = False
        self._loop: GLib.MainLoop | None = None

    def start(self) -> None:
        """Perform the initial sync and subscribe to updates.

        A failed write for one service is logged and does not prevent the
        remaining services from being processed.

        Raises:
            TransportError: If ConnMan cannot be queried.
        """
        for service in self.directory.list_active():
            try:
                self.reconciler.observe_snapshot(service)
            except WriteError as e:
                logger.error("%s", e)

        self._subscription = self.directory.subscribe(self.handle_update)
        logger.debug("Subscribed to service property changes")

    def handle_update(self, service_id: str, update: ServiceUpdate) -> None:
        """Handle one decoded ``PropertyChanged`` notification.

        A service that becomes active without being tracked is fetched in
        full, since the notification carries only the changed property.
        Errors are logged; they never propagate to the main loop.
        """
        try:
            if (
                isinstance(update, StateChanged)
                and update.state in ACTIVE_STATES
                and not self.reconciler.is_tracked(service_id)
            ):
                self._promote(service_id)
            else:
                self.reconciler.apply_update(service_id, update)
        except (ConnmanError, WriteError, ReconciliationError) as e:
            logger.error("%s", e)
        except Exception as e:
            logger.exception(
                "Unexpected error handling update for %s: %s", service_id, e
            )

    def _promote(self, service_id: str) -> None:
        service = self.directory.get(service_id)
        if service.state not in ACTIVE_STATES:
            logger.debug(
                "Service %s is no longer active (%s), not tracking it",
                service_id,
                service.state,
            )
            return
        self.reconciler.observe_snapshot(service)

    def request_stop(self, signum: int | None = None) -> None:
        """Ask the main loop to stop at the next poll.

        Safe to call from a signal handler.
        """
        if signum is not None:
            logger.info("Received signal %d, initiating shutdown...", signum)
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def _check_stop(self) -> bool:
        """GLib timeout callback; returns False once the loop is quit."""
        if not self._stop_requested:
            return True
        if self._loop is not None:
            self._loop.quit()
        return False

    def run(self) -> None:
        """Run the main loop until a stop is requested, then shut down."""
        self._loop = GLib.MainLoop()
        interval_ms = max(1, int(self.poll_interval * 1000))
        GLib.timeout_add(interval_ms, self._check_stop)
        try:
            if not self._stop_requested:
                self._loop.run()
        finally:
            self._loop = None
            self.shutdown()

    def shutdown(self) -> None:
        """Unsubscribe and optionally remove contributed DNS information."""
        if self._subscription is not None:
            self._subscription.remove()
            self._subscription = None

        if self.cleanup_on_term:
            logger.info("Cleaning up and exiting...")
            self.reconciler.teardown_all()
        else:
            logger.info("Exiting, leaving DNS information in place")
