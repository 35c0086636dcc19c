"""
SSH Probe Service Module

Fingerprints SSH servers by driving the transport layer handshake just far
enough to observe the server's banner, KEXINIT, negotiated algorithms, host
key, RFC 8308 extensions and the userauth methods it offers. The probe never
authenticates and never opens a channel.

Module Architecture:
    ssh/
    ├── __init__.py          # This file - public API and factory functions
    ├── algorithms.py        # Algorithm catalog and preference validation
    ├── models.py            # Data classes and enums
    ├── exceptions.py        # Custom exception classes
    ├── flags.py             # Raw operator options (pydantic)
    ├── probe_config.py      # Flags -> immutable ProbeConfig assembly
    ├── policies.py          # Accept-any host key policy and fingerprints
    ├── kexinit.py           # KEXINIT parsing and algorithm agreement
    ├── handshake.py         # Partial handshake state machine
    ├── status.py            # Error -> ScanStatus classification
    ├── dialer.py            # TCP dialing with errno-specific errors
    └── scanner.py           # Per-target orchestration

Usage:
    # Probe a single server
    from sshprobe.services.ssh import ProbeTarget, SSHFlags, get_scanner
    scanner = get_scanner(SSHFlags(collect_extensions=True, collect_userauth=True))
    outcome = scanner.scan(ProbeTarget("192.0.2.10"))
    print(outcome.status.value, outcome.log.to_dict())

    # Validate a preference list on its own
    from sshprobe.services.ssh import SUPPORTED_CIPHERS, validate_algorithms
    ciphers = validate_algorithms("aes256-ctr,aes128-ctr", SUPPORTED_CIPHERS)

Security Notes:
    - ProbeConfig has no credential fields; only a "none" userauth is sent
    - Host keys are recorded but never verified or persisted
    - Banners and targets are sanitized before they reach the logs
"""

from typing import Optional

from .algorithms import (
    AEAD_CIPHERS,
    DEFAULT_CIPHERS,
    DEFAULT_HOST_KEY_ALGORITHMS,
    DEFAULT_KEX_ALGORITHMS,
    DEFAULT_MACS,
    GROUP_EXCHANGE_KEX,
    SUPPORTED_CIPHERS,
    SUPPORTED_HOST_KEY_ALGORITHMS,
    SUPPORTED_KEX_ALGORITHMS,
    SUPPORTED_MACS,
    validate_algorithms,
)
from .dialer import TCPDialer
from .exceptions import (
    AlgorithmNotSupportedError,
    SSHConfigurationError,
    SSHConnectionError,
    SSHHandshakeError,
    SSHProbeError,
    SSHProbeTimeout,
)
from .flags import DEFAULT_CLIENT_ID, SSHFlags
from .handshake import HandshakeDriver
from .kexinit import negotiate, parse_kex_init
from .models import (
    AlgorithmSelection,
    Deadline,
    DiagnosticEntry,
    GroupExchangeRecord,
    HandshakeLog,
    HandshakePhase,
    HostKeyRecord,
    KexInitRecord,
    ProbeConfig,
    ProbeOutcome,
    ProbeTarget,
    ScanStatus,
)
from .policies import AcceptAnyHostKeyPolicy, fingerprint_md5, fingerprint_sha256
from .probe_config import build_probe_config
from .scanner import DEFAULT_PORT, MODULE_NAME, SSHScanner
from .status import classify


def get_scanner(flags: Optional[SSHFlags] = None, dialer: Optional[TCPDialer] = None) -> SSHScanner:
    """
    Factory function to create an SSH scanner.

    Args:
        flags: Operator options; defaults apply when omitted
        dialer: Optional dialer, e.g. one bound to a source address

    Returns:
        SSHScanner with its probe configuration assembled

    Raises:
        SSHConfigurationError: If the flags do not validate

    Example:
        >>> from sshprobe.services.ssh import get_scanner, ProbeTarget
        >>> scanner = get_scanner()
        >>> status, log, error = scanner.scan(ProbeTarget("192.0.2.10"))
    """
    return SSHScanner(flags, dialer=dialer)


# =============================================================================
# Public API exports
# =============================================================================

__all__ = [
    # Factory functions
    "get_scanner",
    # Service classes
    "SSHScanner",
    "HandshakeDriver",
    "TCPDialer",
    "MODULE_NAME",
    "DEFAULT_PORT",
    # Configuration
    "SSHFlags",
    "DEFAULT_CLIENT_ID",
    "build_probe_config",
    # Algorithm catalog (from algorithms.py)
    "SUPPORTED_KEX_ALGORITHMS",
    "SUPPORTED_HOST_KEY_ALGORITHMS",
    "SUPPORTED_CIPHERS",
    "SUPPORTED_MACS",
    "DEFAULT_KEX_ALGORITHMS",
    "DEFAULT_HOST_KEY_ALGORITHMS",
    "DEFAULT_CIPHERS",
    "DEFAULT_MACS",
    "AEAD_CIPHERS",
    "GROUP_EXCHANGE_KEX",
    "validate_algorithms",
    # Models and enums (from models.py)
    "ScanStatus",
    "HandshakePhase",
    "ProbeTarget",
    "ProbeConfig",
    "Deadline",
    "KexInitRecord",
    "AlgorithmSelection",
    "HostKeyRecord",
    "GroupExchangeRecord",
    "DiagnosticEntry",
    "HandshakeLog",
    "ProbeOutcome",
    # Exceptions (from exceptions.py)
    "SSHProbeError",
    "SSHConfigurationError",
    "AlgorithmNotSupportedError",
    "SSHConnectionError",
    "SSHHandshakeError",
    "SSHProbeTimeout",
    # Key exchange and classification
    "parse_kex_init",
    "negotiate",
    "classify",
    # Policies (from policies.py)
    "AcceptAnyHostKeyPolicy",
    "fingerprint_sha256",
    "fingerprint_md5",
]
