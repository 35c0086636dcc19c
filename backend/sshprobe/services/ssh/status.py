"""
Probe Status Classification

Maps the error returned by a probe onto the ScanStatus taxonomy consumed by
the scan scheduler. The mapping is an explicit ordered table checked with
isinstance; the first matching row wins, so more specific types come first
(TimeoutError is an OSError, AlgorithmNotSupportedError is an
SSHConfigurationError). No error strings are inspected.
"""

import socket
from typing import Optional, Sequence, Tuple, Type

import paramiko

from .exceptions import SSHConnectionError, SSHHandshakeError, SSHProbeTimeout
from .models import ScanStatus

STATUS_TABLE: Sequence[Tuple[Type[BaseException], ScanStatus]] = (
    (SSHProbeTimeout, ScanStatus.TIMEOUT),
    (SSHConnectionError, ScanStatus.CONNECTION_ERROR),
    (SSHHandshakeError, ScanStatus.HANDSHAKE_ERROR),
    (socket.timeout, ScanStatus.TIMEOUT),
    (TimeoutError, ScanStatus.TIMEOUT),
    (ConnectionError, ScanStatus.CONNECTION_ERROR),
    (paramiko.SSHException, ScanStatus.HANDSHAKE_ERROR),
)


def classify(error: Optional[BaseException]) -> ScanStatus:
    """
    Derive the scan status for a probe outcome.

    Args:
        error: The error returned by the probe, or None

    Returns:
        ScanStatus.SUCCESS for None, the first table match otherwise,
        ScanStatus.UNKNOWN_ERROR when nothing matches
    """
    if error is None:
        return ScanStatus.SUCCESS
    for error_type, status in STATUS_TABLE:
        if isinstance(error, error_type):
            return status
    return ScanStatus.UNKNOWN_ERROR


__all__ = ["STATUS_TABLE", "classify"]
