"""
SSH Scan Module

One probe per target: dial, arm the deadline, drive the partial handshake,
classify the outcome and release the connection on every exit path.

The probe configuration is assembled once when the scanner is created, so
an invalid algorithm preference fails the run before any target is dialed.
Per-target failures never raise out of scan(); they come back as a
ProbeOutcome with the partial log and the error.

Usage:
    from sshprobe.services.ssh import SSHFlags, SSHScanner, ProbeTarget

    scanner = SSHScanner(SSHFlags(collect_userauth=True))
    status, log, error = scanner.scan(ProbeTarget("192.0.2.10", 22))
    print(status.value, log.to_dict())
"""

import errno
import logging
import socket
import threading
from typing import Optional

from ...utils.logging_security import (
    sanitize_banner_for_log,
    sanitize_error_message_for_log,
    sanitize_target_for_log,
)
from .dialer import TCPDialer
from .exceptions import SSHConnectionError
from .flags import SSHFlags
from .handshake import HandshakeDriver
from .models import Deadline, HandshakeLog, ProbeOutcome, ProbeTarget
from .policies import AcceptAnyHostKeyPolicy
from .probe_config import build_probe_config
from .status import classify

logger = logging.getLogger(__name__)

MODULE_NAME = "ssh"
DEFAULT_PORT = 22
DESCRIPTION = "Fetch an SSH server banner and collect key exchange information"

# errno values raised when closing a connection the peer already tore down
_CLOSED_ERRNOS = frozenset({errno.EBADF, errno.ENOTCONN, errno.EPIPE})


def is_already_closed_error(exc: BaseException) -> bool:
    """Return True for close errors caused by an already closed connection."""
    if isinstance(exc, OSError) and exc.errno in _CLOSED_ERRNOS:
        return True
    return "closed" in str(exc).lower()


class SSHScanner:
    """
    SSH scan module.

    Attributes:
        flags: Raw options the scanner was created with
        config: Validated ProbeConfig shared by every scan of the run
        dialer: Object with dial(target, deadline) returning a socket
        host_key_policy: Policy used to accept and describe host keys
    """

    name = MODULE_NAME
    protocol = "ssh"
    default_port = DEFAULT_PORT
    description = DESCRIPTION

    def __init__(
        self,
        flags: Optional[SSHFlags] = None,
        dialer: Optional[TCPDialer] = None,
        host_key_policy: Optional[AcceptAnyHostKeyPolicy] = None,
        transport_factory=None,
    ) -> None:
        """
        Create the scanner and assemble its probe configuration.

        Raises:
            SSHConfigurationError: If the flags do not form a valid configuration
        """
        self.flags = flags or SSHFlags()
        self.config = build_probe_config(self.flags)
        self.dialer = dialer or TCPDialer()
        self.host_key_policy = host_key_policy or AcceptAnyHostKeyPolicy()
        self.transport_factory = transport_factory

    def scan(self, target: ProbeTarget, cancel: Optional[threading.Event] = None) -> ProbeOutcome:
        """
        Probe one target.

        Args:
            target: Host and port to probe
            cancel: Optional event; setting it aborts the probe promptly

        Returns:
            ProbeOutcome(status, log, error). The log holds everything
            observed up to the point of failure.
        """
        log = HandshakeLog()
        deadline = Deadline(self.config.timeout)

        try:
            sock = self.dialer.dial(target, deadline)
        except Exception as exc:
            return self._outcome(target, log, exc)

        driver = HandshakeDriver(
            self.config,
            log,
            host_key_policy=self.host_key_policy,
            transport_factory=self.transport_factory,
        )
        error: Optional[BaseException] = None
        try:
            self._arm_deadline(sock, target, deadline)
            driver.run(sock, target.host, deadline, cancel)
        except Exception as exc:
            error = exc
        finally:
            self._close(target, driver, sock)

        return self._outcome(target, log, error)

    def _arm_deadline(self, sock: socket.socket, target: ProbeTarget, deadline: Deadline) -> None:
        remaining = deadline.remaining()
        if remaining is None:
            return
        try:
            sock.settimeout(max(0.001, remaining))
        except OSError as exc:
            raise SSHConnectionError(
                f"failed to set connection deadline: {exc}",
                hostname=target.host,
                port=target.port,
                error_type="deadline",
                cause=exc,
            ) from exc

    def _close(self, target: ProbeTarget, driver: HandshakeDriver, sock: socket.socket) -> None:
        for closer in (driver.close, sock.close):
            try:
                closer()
            except Exception as exc:
                if is_already_closed_error(exc):
                    continue
                logger.warning(
                    "Error closing SSH connection for target %s: %s",
                    sanitize_target_for_log(target.host),
                    sanitize_error_message_for_log(exc),
                )

    def _outcome(self, target: ProbeTarget, log: HandshakeLog, error: Optional[BaseException]) -> ProbeOutcome:
        status = classify(error)
        if error is None:
            logger.debug(
                "SSH probe of %s succeeded: %s",
                sanitize_target_for_log(target.host),
                sanitize_banner_for_log(log.banner),
            )
        else:
            logger.debug(
                "SSH probe of %s finished with %s at %s: %s",
                sanitize_target_for_log(target.host),
                status.value,
                getattr(error, "phase", None) or "unknown phase",
                sanitize_error_message_for_log(error),
            )
        return ProbeOutcome(status=status, log=log, error=error)


__all__ = [
    "MODULE_NAME",
    "DEFAULT_PORT",
    "DESCRIPTION",
    "SSHScanner",
    "is_already_closed_error",
]
