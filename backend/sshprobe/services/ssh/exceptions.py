"""
SSH Probe Exceptions

Custom exception classes for the handshake probe with enough context to
classify a failed probe and to log it without re-inspecting error strings.

This module defines:
- SSHProbeError: Base class carrying the handshake phase and root cause
- SSHConfigurationError: Operator misconfiguration, fatal to the whole run
- AlgorithmNotSupportedError: A preference token outside the algorithm catalog
- SSHConnectionError: Dial or deadline-setting failure before the handshake
- SSHHandshakeError: Protocol-level failure at a named handshake phase
- SSHProbeTimeout: Deadline expiry or cancellation at any suspension point

Usage:
    from sshprobe.services.ssh.exceptions import SSHHandshakeError

    try:
        driver.run(sock, hostname, deadline)
    except SSHHandshakeError as e:
        logger.info("Handshake failed at %s: %s", e.phase, e)
"""

from typing import Optional


class SSHProbeError(Exception):
    """
    Base class for every error raised by the probe.

    Attributes:
        message: Human-readable error description
        phase: Handshake phase name the error occurred in (if any)
        cause: The underlying exception (if any)
    """

    def __init__(
        self,
        message: str,
        phase: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.message = message
        self.phase = phase
        self.cause = cause
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.phase:
            return f"{self.message} (phase: {self.phase})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, phase={self.phase!r})"


class SSHConfigurationError(SSHProbeError):
    """
    Invalid probe configuration supplied by the operator.

    Raised before any target is dialed. The same configuration is shared by
    every target of a run, so this error aborts the run rather than a
    single scan.

    Attributes:
        setting_key: The configuration setting involved
        setting_value: The offending value

    Example:
        >>> try:
        ...     build_probe_config(SSHFlags(ciphers="bogus-cipher"))
        ... except SSHConfigurationError as e:
        ...     logger.critical("Invalid configuration: %s", e)
    """

    def __init__(
        self,
        message: str,
        setting_key: Optional[str] = None,
        setting_value: Optional[str] = None,
    ) -> None:
        self.setting_key = setting_key
        self.setting_value = setting_value
        super().__init__(message)

    def __str__(self) -> str:
        if self.setting_key:
            return f"{self.message} (setting: {self.setting_key})"
        return self.message

    def __repr__(self) -> str:
        return f"{type(self).__name__}(message={self.message!r}, " f"setting_key={self.setting_key!r})"


class AlgorithmNotSupportedError(SSHConfigurationError):
    """A preference list token that is not in the algorithm catalog."""

    def __init__(self, algorithm: str, setting_key: Optional[str] = None) -> None:
        self.algorithm = algorithm
        super().__init__(
            f'algorithm not supported: "{algorithm}"',
            setting_key=setting_key,
            setting_value=algorithm,
        )


class SSHConnectionError(SSHProbeError):
    """
    Failure to establish the byte stream before the protocol starts.

    Error Types:
        - refused: Connection actively refused
        - unreachable: Network path not available
        - deadline: The connection deadline could not be set
        - network: Any other socket level failure

    Attributes:
        hostname: Target hostname or IP address
        port: Target port
        error_type: Categorized error type for handling
    """

    def __init__(
        self,
        message: str,
        hostname: Optional[str] = None,
        port: Optional[int] = None,
        error_type: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        self.hostname = hostname
        self.port = port
        self.error_type = error_type
        super().__init__(message, cause=cause)

    def __str__(self) -> str:
        if self.hostname:
            return f"{self.message} (target: {self.hostname}:{self.port or 22})"
        return self.message

    def __repr__(self) -> str:
        return (
            f"SSHConnectionError(message={self.message!r}, "
            f"hostname={self.hostname!r}, port={self.port!r}, "
            f"error_type={self.error_type!r})"
        )


class SSHHandshakeError(SSHProbeError):
    """
    Protocol failure during the handshake.

    Covers malformed or absent banners, no overlapping algorithm, malformed
    key exchange messages and verification failures. The phase attribute
    names where the state machine stopped.
    """


class SSHProbeTimeout(SSHProbeError):
    """
    The probe deadline expired or the probe was cancelled.

    Raised at whichever suspension point was in flight: dial, version
    exchange, key exchange, extension negotiation or userauth probe.
    """


__all__ = [
    "SSHProbeError",
    "SSHConfigurationError",
    "AlgorithmNotSupportedError",
    "SSHConnectionError",
    "SSHHandshakeError",
    "SSHProbeTimeout",
]
