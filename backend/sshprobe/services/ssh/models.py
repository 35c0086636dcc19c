"""
SSH Probe Data Models and Enums

Provides the data structures shared by the probe components: the status
taxonomy consumed by the scan scheduler, the handshake phases, the immutable
probe configuration and the handshake log recorded during a probe.

This module contains:
- ScanStatus: Bounded status taxonomy for probe outcomes
- HandshakePhase: Phases of the partial handshake state machine
- ProbeTarget: Host and port of one scan target
- ProbeConfig: Immutable configuration for a single probe
- Deadline: Absolute monotonic deadline shared by all suspension points
- HandshakeLog: Every protocol artifact observed during a probe
- ProbeOutcome: The (status, log, error) result handed back to the scheduler

Serialization Notes:
- HandshakeLog.to_dict() omits fields that were never observed
- Failures never write placeholder values into the log; the error travels
  separately in ProbeOutcome

Usage:
    from sshprobe.services.ssh.models import HandshakeLog, ScanStatus

    log = HandshakeLog()
    log.record_banner("SSH-2.0-OpenSSH_9.0\\r\\n")
    assert log.to_dict() == {"banner": "SSH-2.0-OpenSSH_9.0"}
"""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union


class ScanStatus(str, Enum):
    """
    Outcome of one probe as seen by the scan scheduler.

    The values are mutually exclusive and collectively exhaustive; every
    error maps onto exactly one of them (see status.classify).
    """

    SUCCESS = "success"
    CONNECTION_ERROR = "connection-error"
    HANDSHAKE_ERROR = "handshake-error"
    TIMEOUT = "timeout"
    UNKNOWN_ERROR = "unknown-error"


class HandshakePhase(str, Enum):
    """Phases of the probe, in execution order."""

    CONNECT = "connect"
    VERSION_EXCHANGE = "version_exchange"
    KEY_EXCHANGE = "key_exchange"
    EXTENSION_NEGOTIATION = "extension_negotiation"
    USERAUTH_PROBE = "userauth_probe"
    DONE = "done"


@dataclass(frozen=True)
class ProbeTarget:
    """A single scan target."""

    host: str
    port: int = 22

    @property
    def address(self) -> str:
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"

    def __str__(self) -> str:
        return self.address


@dataclass(frozen=True)
class ProbeConfig:
    """
    Immutable configuration for a single probe.

    Built once per scan invocation by build_probe_config() from validated
    inputs and consumed by the handshake driver. There is intentionally no
    field for a password, private key or agent: the probe cannot be
    configured to authenticate.

    Attributes:
        client_id: Identification string sent during version exchange
        kex_algorithms: Key exchange preference list
        host_key_algorithms: Host key preference list
        ciphers: Cipher preference list (both directions)
        macs: MAC preference list (both directions)
        hello_only: Stop right after the version exchange
        collect_extensions: Wait for and record RFC 8308 extensions
        collect_userauth: Send a "none" userauth request to list methods
        gex_min_bits: Minimum DH group exchange prime size
        gex_preferred_bits: Preferred DH group exchange prime size
        gex_max_bits: Maximum DH group exchange prime size
        timeout: Overall connect/operation timeout in seconds (0 disables)
        userauth_username: User name placed in the "none" request
        verbose: Also record non-deterministic handshake material
        ext_info_wait: Seconds to wait for the server's EXT_INFO message
    """

    dont_authenticate: ClassVar[bool] = True

    client_id: str
    kex_algorithms: Tuple[str, ...]
    host_key_algorithms: Tuple[str, ...]
    ciphers: Tuple[str, ...]
    macs: Tuple[str, ...]
    hello_only: bool = False
    collect_extensions: bool = False
    collect_userauth: bool = False
    gex_min_bits: int = 1024
    gex_preferred_bits: int = 2048
    gex_max_bits: int = 8192
    timeout: float = 0.0
    userauth_username: str = "root"
    verbose: bool = False
    ext_info_wait: float = 2.0


class Deadline:
    """
    Absolute deadline on the monotonic clock.

    A deadline built from a zero or negative timeout never expires, which
    mirrors a zero connect timeout meaning "no deadline".
    """

    def __init__(self, timeout: float = 0.0) -> None:
        self.timeout = timeout
        self.expires_at: Optional[float] = time.monotonic() + timeout if timeout > 0 else None

    def remaining(self) -> Optional[float]:
        """Seconds left, clamped at zero, or None without a deadline."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at

    def __repr__(self) -> str:
        return f"Deadline(timeout={self.timeout!r}, remaining={self.remaining()!r})"


def _compact(value: Dict[str, Any]) -> Dict[str, Any]:
    return {key: item for key, item in value.items() if item is not None}


@dataclass
class KexInitRecord:
    """Algorithm lists advertised in one side's SSH_MSG_KEXINIT."""

    kex_algorithms: List[str]
    host_key_algorithms: List[str]
    client_to_server_ciphers: List[str]
    server_to_client_ciphers: List[str]
    client_to_server_macs: List[str]
    server_to_client_macs: List[str]
    client_to_server_compression: List[str]
    server_to_client_compression: List[str]
    first_kex_follows: bool = False
    cookie: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class AlgorithmSelection:
    """
    Algorithms agreed for the session.

    The MAC entries are None when the agreed cipher is an AEAD cipher.
    """

    kex: str
    host_key: str
    client_to_server_cipher: str
    server_to_client_cipher: str
    client_to_server_mac: Optional[str] = None
    server_to_client_mac: Optional[str] = None
    client_to_server_compression: Optional[str] = None
    server_to_client_compression: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class HostKeyRecord:
    """Server host key as presented during key exchange (never verified)."""

    algorithm: str
    key_type: str
    fingerprint_sha256: str
    fingerprint_md5: str
    bits: Optional[int] = None
    public_key: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class GroupExchangeRecord:
    """Bounds requested for DH group exchange and the prime size received."""

    min_bits: int
    preferred_bits: int
    max_bits: int
    prime_bits: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class DiagnosticEntry:
    """Phase-tagged note recorded while the probe runs."""

    phase: str
    message: str
    level: str = "info"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HandshakeLog:
    """
    Structured record of every protocol artifact observed during a probe.

    The log is owned by the caller and filled in place by the handshake
    driver, one phase at a time, so it stays readable after a failure at any
    phase. Fields are only ever set, never cleared. A field left as None
    means the artifact was not observed or the step was not attempted; for
    extensions and userauth an empty list means the step ran and the server
    advertised nothing.
    """

    banner: Optional[str] = None
    server_kex_init: Optional[KexInitRecord] = None
    client_kex_init: Optional[KexInitRecord] = None
    algorithm_selection: Optional[AlgorithmSelection] = None
    server_host_key: Optional[HostKeyRecord] = None
    dh_group_exchange: Optional[GroupExchangeRecord] = None
    extensions: Optional[List[str]] = None
    server_sig_algs: Optional[List[str]] = None
    userauth: Optional[List[str]] = None
    diagnostics: List[DiagnosticEntry] = field(default_factory=list)

    def record_banner(self, banner: str) -> None:
        self.banner = banner.strip()

    def record_kex_init(self, server: KexInitRecord, client: Optional[KexInitRecord] = None) -> None:
        self.server_kex_init = server
        if client is not None:
            self.client_kex_init = client

    def record_selection(self, selection: AlgorithmSelection) -> None:
        self.algorithm_selection = selection

    def record_host_key(self, host_key: HostKeyRecord) -> None:
        self.server_host_key = host_key

    def record_group_exchange(self, record: GroupExchangeRecord) -> None:
        self.dh_group_exchange = record

    def record_extensions(self, names: List[str], server_sig_algs: Optional[List[str]] = None) -> None:
        self.extensions = list(names)
        if server_sig_algs is not None:
            self.server_sig_algs = list(server_sig_algs)

    def record_userauth(self, methods: List[str]) -> None:
        self.userauth = list(methods)

    def add_diagnostic(self, phase: Union[HandshakePhase, str], message: str, level: str = "info") -> None:
        phase_name = phase.value if isinstance(phase, HandshakePhase) else phase
        self.diagnostics.append(DiagnosticEntry(phase=phase_name, message=message, level=level))

    def is_empty(self) -> bool:
        return not self.to_dict()

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the log to a dictionary for JSON serialization.

        Unset fields and an empty diagnostics list are omitted, so a log
        from a probe that failed before the banner serializes to {}.
        """
        result: Dict[str, Any] = {}
        if self.banner is not None:
            result["banner"] = self.banner
        for name in (
            "server_kex_init",
            "client_kex_init",
            "algorithm_selection",
            "server_host_key",
            "dh_group_exchange",
        ):
            record = getattr(self, name)
            if record is not None:
                result[name] = record.to_dict()
        for name in ("extensions", "server_sig_algs", "userauth"):
            values = getattr(self, name)
            if values is not None:
                result[name] = list(values)
        if self.diagnostics:
            result["diagnostics"] = [entry.to_dict() for entry in self.diagnostics]
        return result


@dataclass
class ProbeOutcome:
    """
    Result of one probe handed back to the scan scheduler.

    Attributes:
        status: Classified outcome
        log: Handshake log, possibly partial
        error: Most specific underlying error, None on success
    """

    status: ScanStatus
    log: HandshakeLog
    error: Optional[BaseException] = None

    def __iter__(self):
        return iter((self.status, self.log, self.error))

    def __repr__(self) -> str:
        if self.error is None:
            return f"ProbeOutcome(status={self.status.value})"
        return f"ProbeOutcome(status={self.status.value}, error={self.error!s})"


__all__ = [
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
]
