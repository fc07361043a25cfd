# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Interface for calling the ``resolvconf(8)`` helper.

DNS data is published per interface with ``resolvconf -a <iface>`` (content
on stdin) and withdrawn with ``resolvconf -d <iface>``.  The helper runs with
our privileges, so its ownership and mode are verified before every call.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import subprocess

from connman_resolvconf.service import Service


logger = logging.getLogger(__name__)

DEFAULT_RESOLVCONF = "/usr/sbin/resolvconf"


class WriteError(Exception):
    """Raised when the resolvconf helper could not be invoked successfully."""


class UnsafeHelperError(WriteError):
    """Raised when the helper binary may have been tampered with."""


def render_resolv_conf(service: Service) -> str:
    """Generate the resolv.conf fragment contributed by *service*.

    Args:
        service: Service whose domains and nameservers are rendered.

    Returns:
        Header comment, optional ``search`` line, then one ``nameserver``
        line per address, each terminated by a newline.
    """
    lines = [f"# Generated for {service.id}"]
    if service.domains:
        lines.append(f"search {' '.join(service.domains)}")
    lines.extend(f"nameserver {ns}" for ns in service.nameservers)
    return "".join(f"{line}\n" for line in lines)


def find_helper(name: str) -> str:
    """Return the full path of the helper program *name*.

    A bare name is looked up on ``PATH``; anything containing a path
    separator must be an existing executable file.

    Raises:
        WriteError: If no executable is found.
    """
    if os.sep not in name:
        found = shutil.which(name)
        if found is None:
            raise WriteError(f"Command was not found on PATH: {name}")
        return found

    if os.path.isfile(name) and os.access(name, os.X_OK):
        return name
    raise WriteError(f"File does not exist or is not executable: {name}")


def check_permissions(path: str) -> None:
    """Verify that *path* is safe to execute.

    The file must not be writable by group or others, and must be owned
    by root or by the current user.

    Raises:
        WriteError: If the file cannot be inspected.
        UnsafeHelperError: If the ownership or mode is unsafe.
    """
    try:
        st = os.stat(path)
    except OSError as exc:
        raise WriteError(f"Failed to read {path}: {exc}") from exc

    mode = stat.S_IMODE(st.st_mode)
    if mode & (stat.S_IWGRP | stat.S_IWOTH):
        raise UnsafeHelperError(
            f"File {path} is writeable by group or others (mode {mode:o})"
        )

    uid = os.getuid()
    if st.st_uid not in (0, uid):
        raise UnsafeHelperError(
            f"File {path} is not owned by root nor the current user "
            f"(uid {uid}), but by uid {st.st_uid}"
        )


class Resolvconf:
    """Runs the resolvconf helper to add or delete DNS information.

    Attributes:
        path: Resolved path of the helper program.
    """

    def __init__(self, path: str = DEFAULT_RESOLVCONF) -> None:
        """Initialize the writer.

        Args:
            path: Helper program, either a bare name looked up on ``PATH``
                or a path to an executable.

        Raises:
            WriteError: If the helper cannot be found.
        """
        self.path = find_helper(path)
        logger.debug("Using resolvconf helper %s", self.path)

    def apply(self, interface: str, content: str) -> None:
        """Add DNS information (resolv.conf format) for *interface*.

        Raises:
            WriteError: If the helper is unsafe, missing or fails.
        """
        self._run(["-a", interface], content)

    def remove(self, interface: str) -> None:
        """Delete DNS information for *interface*.

        Raises:
            WriteError: If the helper is unsafe, missing or fails.
        """
        self._run(["-d", interface], None)

    def _run(self, args: list[str], content: str | None) -> None:
        check_permissions(self.path)

        logger.debug("Executing command: %s %s", self.path, " ".join(args))
        if content is not None:
            logger.debug("Writing to stdin pipe: %r", content)

        try:
            subprocess.run(
                [self.path, *args],
                input=content,
                stdin=subprocess.DEVNULL if content is None else None,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                check=True,
            )
        except subprocess.CalledProcessError as e:
            error_msg = e.stderr.strip() if e.stderr else ""
            detail = f": {error_msg}" if error_msg else ""
            raise WriteError(
                f"Command {self.path} exited with status {e.returncode}"
                f"{detail}"
            ) from e
        except OSError as e:
            raise WriteError(f"Failed to execute {self.path}: {e}") from e
