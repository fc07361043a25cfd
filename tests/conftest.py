# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test modules."""

import logging
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from connman_resolvconf.service import Service


@pytest.fixture
def make_service() -> Callable[..., Service]:
    """Factory for ``Service`` objects with sensible defaults."""

    def _make(
        service_id: str = "ethernet_0800271a2b3c_cable",
        state: str = "ready",
        interface: str | None = "eth0",
        nameservers: list[str] | None = None,
        domains: list[str] | None = None,
    ) -> Service:
        return Service(
            id=service_id,
            state=state,
            interface=interface,
            nameservers=(
                ["10.0.0.1"] if nameservers is None else list(nameservers)
            ),
            domains=[] if domains is None else list(domains),
        )

    return _make


@pytest.fixture
def writer() -> MagicMock:
    """Mock resolvconf writer recording ``apply``/``remove`` calls."""
    return MagicMock(spec_set=["apply", "remove"])


@pytest.fixture
def helper_script(tmp_path: Path) -> Path:
    """Create a fake resolvconf helper that mirrors calls into files.

    ``-a IFACE`` writes stdin to ``<tmp>/out/IFACE``; ``-d IFACE`` deletes
    that file.  The script is mode 0755 and owned by the current user.

    Returns:
        Path to the helper script.
    """
    out_dir = tmp_path / "out"
    out_dir.mkdir()
    script = tmp_path / "resolvconf"
    script.write_text(
        "#!/bin/sh\n"
        f'OUT="{out_dir}"\n'
        'case "$1" in\n'
        '  -a) cat > "$OUT/$2" ;;\n'
        '  -d) rm -f "$OUT/$2" ;;\n'
        "  *) echo \"bad mode: $1\" >&2; exit 2 ;;\n"
        "esac\n"
    )
    script.chmod(0o755)
    return script


@pytest.fixture
def restore_root_logger() -> Iterator[logging.Logger]:
    """Restore root logger handlers and level after the test."""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
