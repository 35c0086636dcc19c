"""
TCP Dialer

Opens the byte stream a probe runs over. Connection failures are turned
into SSHConnectionError with an errno-specific message, connect timeouts
into SSHProbeTimeout.
"""

import errno
import logging
import socket
from typing import Optional

from ...utils.logging_security import sanitize_target_for_log
from .exceptions import SSHConnectionError, SSHProbeTimeout
from .models import Deadline, HandshakePhase, ProbeTarget

logger = logging.getLogger(__name__)


class TCPDialer:
    """
    Dial targets over TCP.

    Attributes:
        source_address: Optional (host, port) to bind before connecting
    """

    def __init__(self, source_address: Optional[tuple] = None) -> None:
        self.source_address = source_address

    def dial(self, target: ProbeTarget, deadline: Deadline) -> socket.socket:
        """
        Connect to a target within the probe deadline.

        Args:
            target: Host and port to connect to
            deadline: Probe deadline; the remaining time bounds the connect

        Returns:
            Connected socket

        Raises:
            SSHProbeTimeout: The connect did not finish before the deadline
            SSHConnectionError: Refused, unreachable or other socket error
        """
        phase = HandshakePhase.CONNECT.value
        try:
            return socket.create_connection(
                (target.host, target.port),
                timeout=deadline.remaining(),
                source_address=self.source_address,
            )
        except socket.timeout as exc:
            raise SSHProbeTimeout(f"failed to dial target {target}: connection timed out", phase, exc) from exc
        except OSError as exc:
            logger.debug("Dial to %s failed: %s", sanitize_target_for_log(target.host), exc)
            raise SSHConnectionError(
                f"failed to dial target {target}: {self._describe(exc)}",
                hostname=target.host,
                port=target.port,
                error_type=self._error_type(exc),
                cause=exc,
            ) from exc

    @staticmethod
    def _error_type(exc: OSError) -> str:
        if exc.errno == errno.ECONNREFUSED:
            return "refused"
        if exc.errno in (errno.EHOSTUNREACH, errno.ENETUNREACH):
            return "unreachable"
        return "network"

    @staticmethod
    def _describe(exc: OSError) -> str:
        if exc.errno == errno.ECONNREFUSED:
            return "connection refused (SSH service may not be running)"
        if exc.errno == errno.EHOSTUNREACH:
            return "no route to host"
        if exc.errno == errno.ENETUNREACH:
            return "network unreachable"
        if isinstance(exc, socket.gaierror):
            return f"name resolution failed: {exc}"
        return f"network error: {exc}"


__all__ = ["TCPDialer"]
