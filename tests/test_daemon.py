# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for the daemon lifecycle."""

import logging
from unittest.mock import MagicMock, patch

import pytest

from connman_resolvconf.connman import ServiceNotFoundError, TransportError
from connman_resolvconf.daemon import ResolvconfDaemon
from connman_resolvconf.reconciler import Reconciler
from connman_resolvconf.resolvconf import WriteError
from connman_resolvconf.service import (
    DomainsChanged,
    NameserversChanged,
    StateChanged,
)


@pytest.fixture
def directory() -> MagicMock:
    """Mock service directory with no services."""
    mock = MagicMock()
    mock.list_active.return_value = []
    return mock


@pytest.fixture
def reconciler(writer: MagicMock) -> Reconciler:
    return Reconciler(writer)


@pytest.fixture
def daemon(directory, reconciler) -> ResolvconfDaemon:
    return ResolvconfDaemon(directory, reconciler)


class TestStart:
    """Tests for ResolvconfDaemon.start()."""

    def test_initial_sync(
        self, daemon, directory, writer, make_service
    ) -> None:
        """Every active service is published before subscribing."""
        directory.list_active.return_value = [
            make_service(service_id="a", interface="eth0"),
            make_service(service_id="b", interface="wlan0"),
        ]

        daemon.start()

        assert [c[0][0] for c in writer.apply.call_args_list] == [
            "eth0",
            "wlan0",
        ]
        directory.subscribe.assert_called_once_with(daemon.handle_update)

    def test_write_failure_does_not_stop_sync(
        self, daemon, directory, reconciler, writer, make_service, caplog
    ) -> None:
        """A failed write is logged and the next service is processed."""
        directory.list_active.return_value = [
            make_service(service_id="a", interface="eth0"),
            make_service(service_id="b", interface="eth1"),
        ]
        writer.apply.side_effect = [WriteError("helper failed"), None]

        with caplog.at_level(logging.ERROR):
            daemon.start()

        assert "helper failed" in caplog.text
        assert not reconciler.is_tracked("a")
        assert reconciler.is_tracked("b")
        directory.subscribe.assert_called_once()

    def test_transport_error_propagates(self, daemon, directory) -> None:
        """Failing to list services is fatal."""
        directory.list_active.side_effect = TransportError("no bus")
        with pytest.raises(TransportError):
            daemon.start()
        directory.subscribe.assert_not_called()


class TestHandleUpdate:
    """Tests for ResolvconfDaemon.handle_update()."""

    def test_activation_of_untracked_service_fetches_it(
        self, daemon, directory, reconciler, writer, make_service
    ) -> None:
        """A service becoming ready is fetched and published."""
        directory.get.return_value = make_service(
            service_id="wifi_1", interface="wlan0", state="ready"
        )

        daemon.handle_update("wifi_1", StateChanged("ready"))

        directory.get.assert_called_once_with("wifi_1")
        writer.apply.assert_called_once()
        assert reconciler.is_tracked("wifi_1")

    def test_activation_of_inactive_service_skipped(
        self, daemon, directory, reconciler, writer, make_service
    ) -> None:
        """A service that left the active states meanwhile is ignored."""
        directory.get.return_value = make_service(
            service_id="wifi_1", state="disconnect"
        )

        daemon.handle_update("wifi_1", StateChanged("online"))

        writer.apply.assert_not_called()
        assert not reconciler.is_tracked("wifi_1")

    def test_tracked_service_goes_to_reconciler(
        self, daemon, directory, reconciler, writer, make_service
    ) -> None:
        """Updates for tracked services are merged without refetching."""
        reconciler.observe_snapshot(make_service(service_id="eth"))
        writer.reset_mock()

        daemon.handle_update("eth", StateChanged("online"))
        daemon.handle_update("eth", NameserversChanged(["10.0.0.5"]))

        directory.get.assert_not_called()
        assert writer.apply.call_count == 2

    def test_non_state_update_for_untracked_ignored(
        self, daemon, directory, writer
    ) -> None:
        """Property changes of untracked services are dropped."""
        daemon.handle_update("x", DomainsChanged(["corp.example"]))
        daemon.handle_update("x", StateChanged("association"))

        directory.get.assert_not_called()
        writer.apply.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [
            ServiceNotFoundError("No such service found: x"),
            TransportError("timeout"),
            WriteError("helper failed"),
        ],
    )
    def test_known_errors_logged(
        self, daemon, directory, error, caplog
    ) -> None:
        """Expected errors are logged and swallowed."""
        directory.get.side_effect = error
        with caplog.at_level(logging.ERROR):
            daemon.handle_update("x", StateChanged("ready"))
        assert str(error) in caplog.text

    def test_reconciliation_error_logged(
        self, daemon, reconciler, make_service, caplog
    ) -> None:
        """An unexpected transition is logged and swallowed."""
        reconciler.observe_snapshot(make_service(service_id="eth"))
        with caplog.at_level(logging.ERROR):
            daemon.handle_update("eth", StateChanged("failure"))
        assert "Unexpected service update in state failure" in caplog.text

    def test_unexpected_error_logged(self, daemon, directory, caplog) -> None:
        """Any other exception is logged with a traceback."""
        directory.get.side_effect = RuntimeError("kaboom")
        with caplog.at_level(logging.ERROR):
            daemon.handle_update("x", StateChanged("ready"))
        assert "kaboom" in caplog.text
        assert caplog.records[-1].exc_info is not None


class TestStop:
    """Tests for stop requests and the main loop."""

    def test_request_stop(self, daemon) -> None:
        """request_stop() sets the flag."""
        assert not daemon.stop_requested
        daemon.request_stop(15)
        assert daemon.stop_requested

    def test_check_stop_keeps_polling(self, daemon) -> None:
        """The timeout stays installed until a stop is requested."""
        assert daemon._check_stop() is True

    def test_check_stop_quits_loop(self, daemon) -> None:
        """A pending stop quits the loop and removes the timeout."""
        daemon._loop = MagicMock()
        daemon.request_stop()

        assert daemon._check_stop() is False
        daemon._loop.quit.assert_called_once()

    def test_run_installs_poll_and_shuts_down(
        self, directory, reconciler, writer, make_service
    ) -> None:
        """run() polls at the configured interval and cleans up after."""
        daemon = ResolvconfDaemon(directory, reconciler, poll_interval=0.25)
        reconciler.observe_snapshot(make_service())

        with patch("connman_resolvconf.daemon.GLib") as mock_glib:
            daemon.run()

        mock_glib.timeout_add.assert_called_once_with(
            250, daemon._check_stop
        )
        mock_glib.MainLoop.return_value.run.assert_called_once()
        writer.remove.assert_called_once_with("eth0")

    def test_sub_millisecond_interval_clamped(
        self, directory, reconciler
    ) -> None:
        """Tiny poll intervals never become a zero-delay timeout."""
        daemon = ResolvconfDaemon(
            directory, reconciler, poll_interval=0.0001
        )
        with patch("connman_resolvconf.daemon.GLib") as mock_glib:
            daemon.run()
        mock_glib.timeout_add.assert_called_once_with(1, daemon._check_stop)

    def test_run_skips_loop_when_already_stopped(self, daemon) -> None:
        """A stop requested before run() skips the loop."""
        daemon.request_stop()
        with patch("connman_resolvconf.daemon.GLib") as mock_glib:
            daemon.run()
        mock_glib.MainLoop.return_value.run.assert_not_called()

    def test_run_shuts_down_on_loop_error(
        self, daemon, directory
    ) -> None:
        """Shutdown runs even if the loop raises."""
        daemon.start()
        with patch("connman_resolvconf.daemon.GLib") as mock_glib:
            mock_glib.MainLoop.return_value.run.side_effect = RuntimeError(
                "loop"
            )
            with pytest.raises(RuntimeError):
                daemon.run()
        directory.subscribe.return_value.remove.assert_called_once()


class TestShutdown:
    """Tests for ResolvconfDaemon.shutdown()."""

    def test_unsubscribes_and_cleans_up(
        self, daemon, directory, reconciler, writer, make_service
    ) -> None:
        """Shutdown removes the subscription and all DNS information."""
        directory.list_active.return_value = [make_service()]
        daemon.start()

        daemon.shutdown()

        directory.subscribe.return_value.remove.assert_called_once()
        writer.remove.assert_called_once_with("eth0")
        assert reconciler.known == {}

    def test_no_cleanup(
        self, directory, reconciler, writer, make_service, caplog
    ) -> None:
        """With cleanup disabled, DNS information is left in place."""
        daemon = ResolvconfDaemon(
            directory, reconciler, cleanup_on_term=False
        )
        directory.list_active.return_value = [make_service()]
        daemon.start()

        with caplog.at_level(logging.INFO):
            daemon.shutdown()

        writer.remove.assert_not_called()
        assert "leaving DNS information in place" in caplog.text

    def test_shutdown_without_start(self, daemon, writer) -> None:
        """Shutting down before start() is harmless."""
        daemon.shutdown()
        writer.remove.assert_not_called()

    def test_unsubscribe_once(self, daemon, directory) -> None:
        """A second shutdown does not unsubscribe again."""
        daemon.start()
        daemon.shutdown()
        daemon.shutdown()
        directory.subscribe.return_value.remove.assert_called_once()
