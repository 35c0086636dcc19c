"""
SSH Handshake Driver

Drives the partial SSH handshake over an already connected socket and
records what it observes into a HandshakeLog as it goes.

Phases (strictly sequential):
    1. VersionExchange: identification strings are exchanged
    2. KeyExchange: algorithms are agreed strictly from the configured
       preference lists and the server host key is observed
    3. ExtensionNegotiation (optional): RFC 8308 EXT_INFO is recorded
    4. UserAuthProbe (optional): one "none" userauth request lists the
       methods the server accepts
    5. Done: the transport is handed back, no channel is ever opened

With hello_only the driver performs the version exchange itself and stops
there. Otherwise paramiko's Transport carries the protocol; the driver only
configures it, waits on it against the probe deadline and reads back what it
negotiated.

The driver never authenticates. ProbeConfig carries no credentials and the
only userauth call made here is Transport.auth_none().

Usage:
    log = HandshakeLog()
    driver = HandshakeDriver(config, log)
    try:
        transport = driver.run(sock, "192.0.2.10", Deadline(config.timeout))
    finally:
        driver.close()
"""

import logging
import socket
import threading
from typing import Callable, Dict, Optional

import paramiko

from ...utils.logging_security import (
    sanitize_banner_for_log,
    sanitize_error_message_for_log,
    sanitize_target_for_log,
)
from .algorithms import CURVE25519_LIBSSH, CURVE25519_RFC8731, GROUP_EXCHANGE_KEX
from .exceptions import SSHConfigurationError, SSHHandshakeError, SSHProbeError, SSHProbeTimeout
from .kexinit import negotiate, parse_kex_init, server_supports_ext_info
from .models import Deadline, GroupExchangeRecord, HandshakeLog, HandshakePhase, KexInitRecord, ProbeConfig
from .policies import AcceptAnyHostKeyPolicy

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1

# RFC 4253 section 4.2: the server may send other lines first; each line,
# CRLF included, is at most 255 bytes.
MAX_PRE_BANNER_LINES = 100
MAX_IDENTIFICATION_LENGTH = 255

# Transport level timeouts trail the probe deadline so the deadline fires first.
TRANSPORT_TIMEOUT_GRACE = 1.0


class KexObservation:
    """
    What one probe's kex engine saw while key exchange was running.

    paramiko drops both KEXINIT payloads while processing NEWKEYS, before
    the completion event fires, so they are copied when the engine starts.

    Attributes:
        local_kex_init: Client SSH_MSG_KEXINIT payload
        remote_kex_init: Server SSH_MSG_KEXINIT payload
        prime_bits: Size of the group exchange prime sent by the server
    """

    def __init__(self) -> None:
        self.local_kex_init: Optional[bytes] = None
        self.remote_kex_init: Optional[bytes] = None
        self.prime_bits: Optional[int] = None


class _KexInitRecorder:
    """Mixin for kex classes that copies both KEXINIT payloads as the exchange starts."""

    observation: KexObservation

    def start_kex(self, *args, **kwargs):
        self.observation.local_kex_init = self.transport.local_kex_init
        self.observation.remote_kex_init = self.transport.remote_kex_init
        return super().start_kex(*args, **kwargs)


class _PrimeSizeRecorder(_KexInitRecorder):
    """Group exchange variant that also remembers the server prime size."""

    def _parse_kexdh_gex_group(self, m):
        super()._parse_kexdh_gex_group(m)
        if self.p is not None:
            self.observation.prime_bits = self.p.bit_length()


def bound_kex_classes(config: ProbeConfig, observation: KexObservation) -> Dict[str, type]:
    """
    Build the kex classes registered on one probe's transport.

    Every configured kex algorithm is subclassed per probe so the engine
    reports into this probe's observation. Group exchange classes also carry
    the configured min/preferred/max prime sizes instead of paramiko's class
    defaults. "curve25519-sha256" is the RFC 8731 name of the libssh
    algorithm and uses the same implementation.
    """
    implementations = dict(paramiko.Transport._kex_info)
    if CURVE25519_LIBSSH in implementations:
        implementations[CURVE25519_RFC8731] = implementations[CURVE25519_LIBSSH]

    classes = {}
    for name in config.kex_algorithms:
        base = implementations.get(name)
        if base is None:
            continue
        attributes = {"observation": observation}
        recorder = _KexInitRecorder
        if name in GROUP_EXCHANGE_KEX:
            recorder = _PrimeSizeRecorder
            attributes.update(
                min_bits=config.gex_min_bits,
                preferred_bits=config.gex_preferred_bits,
                max_bits=config.gex_max_bits,
            )
        classes[name] = type(f"Probe{base.__name__}", (recorder, base), attributes)
    return classes


def _poll_timeout(deadline: Deadline) -> float:
    remaining = deadline.remaining()
    if remaining is None:
        return POLL_INTERVAL
    # a zero socket timeout would switch the socket to non-blocking mode
    return max(0.001, min(POLL_INTERVAL, remaining))


def _decode(value) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class _Watchdog:
    """
    Close a transport when the probe is cancelled or its deadline passes.

    Used around blocking paramiko calls that take no deadline of their own,
    so that an expired or cancelled probe aborts promptly.
    """

    def __init__(self, transport, deadline: Deadline, cancel: Optional[threading.Event]) -> None:
        self.transport = transport
        self.deadline = deadline
        self.cancel = cancel
        self.fired = False
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _watch(self) -> None:
        while not self._stop.wait(POLL_INTERVAL):
            if (self.cancel is not None and self.cancel.is_set()) or self.deadline.expired():
                self.fired = True
                self.transport.close()
                return

    def __enter__(self) -> "_Watchdog":
        if self.cancel is not None or self.deadline.expires_at is not None:
            self._thread = threading.Thread(target=self._watch, name="sshprobe-watchdog", daemon=True)
            self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join()


class HandshakeDriver:
    """
    Partial SSH handshake state machine for one probe.

    Attributes:
        config: Probe configuration (consumed once)
        log: Caller owned log, filled in as phases complete
        host_key_policy: Policy that accepts and describes the host key
        transport: The paramiko Transport once created, for cleanup
        phase: The phase currently executing
    """

    def __init__(
        self,
        config: ProbeConfig,
        log: HandshakeLog,
        host_key_policy: Optional[AcceptAnyHostKeyPolicy] = None,
        transport_factory: Optional[Callable[[socket.socket], paramiko.Transport]] = None,
    ) -> None:
        self.config = config
        self.log = log
        self.host_key_policy = host_key_policy or AcceptAnyHostKeyPolicy()
        self.transport_factory = transport_factory or paramiko.Transport
        self.transport: Optional[paramiko.Transport] = None
        self.phase = HandshakePhase.VERSION_EXCHANGE
        self.hostname = ""
        self.observation = KexObservation()
        self._server_kex_init: Optional[KexInitRecord] = None

    def run(
        self,
        sock: socket.socket,
        hostname: str,
        deadline: Deadline,
        cancel: Optional[threading.Event] = None,
    ) -> Optional[paramiko.Transport]:
        """
        Execute the handshake phases.

        Args:
            sock: Connected socket, exclusively owned by this probe
            hostname: Target host, used for logging and the host key policy
            deadline: Probe deadline covering every phase
            cancel: Optional event that aborts the probe when set

        Returns:
            The paramiko Transport after the last phase, or None in
            hello-only mode

        Raises:
            SSHHandshakeError: Protocol failure at the phase named by .phase;
                any other error raised inside a phase is wrapped the same way
            SSHProbeTimeout: Deadline expired or probe cancelled
            SSHConfigurationError: The transport refused a configured algorithm
        """
        self.hostname = hostname
        try:
            if self.config.hello_only:
                self._exchange_versions(sock, deadline, cancel)
                self.phase = HandshakePhase.DONE
                return None

            transport = self._create_transport(sock)
            self._key_exchange(transport, deadline, cancel)
            if self.config.collect_extensions:
                self._collect_extensions(transport, deadline, cancel)
            if self.config.collect_userauth:
                self._probe_userauth(transport, deadline, cancel)
            self.phase = HandshakePhase.DONE
            return transport
        except SSHConfigurationError:
            raise
        except SSHProbeError as exc:
            self._record_failure(exc)
            raise
        except Exception as exc:
            phase = self.phase.value
            error = SSHHandshakeError(
                f"unexpected error during {phase.replace('_', ' ')}: {exc!r}",
                phase,
                exc,
            )
            self._record_failure(error)
            raise error from exc

    def _record_failure(self, exc: SSHProbeError) -> None:
        self.log.add_diagnostic(exc.phase or self.phase, exc.message, level="error")
        logger.debug(
            "Handshake with %s stopped at %s: %s",
            sanitize_target_for_log(self.hostname),
            exc.phase,
            sanitize_error_message_for_log(exc.message),
        )

    def close(self) -> None:
        """Close the transport, if one was created."""
        if self.transport is not None:
            self.transport.close()

    # -------------------------------------------------------------------------
    # Version exchange (hello-only)
    # -------------------------------------------------------------------------

    def _exchange_versions(self, sock: socket.socket, deadline: Deadline, cancel: Optional[threading.Event]) -> None:
        phase = HandshakePhase.VERSION_EXCHANGE
        self.phase = phase
        buffer = bytearray()
        try:
            self._check_interrupted(deadline, cancel, phase)
            remaining = deadline.remaining()
            sock.settimeout(max(0.001, remaining) if remaining is not None else None)
            sock.sendall(self.config.client_id.encode("utf-8") + b"\r\n")
            for _ in range(MAX_PRE_BANNER_LINES):
                line = self._read_line(sock, buffer, deadline, cancel)
                if line.startswith(b"SSH-"):
                    self.log.record_banner(line.decode("utf-8", errors="replace"))
                    logger.debug(
                        "Received banner from %s: %s",
                        sanitize_target_for_log(self.hostname),
                        sanitize_banner_for_log(self.log.banner),
                    )
                    self._check_identification(self.log.banner)
                    return
                logger.debug("Skipping pre-banner line from %s", sanitize_target_for_log(self.hostname))
        except socket.timeout as exc:
            raise SSHProbeTimeout("deadline exceeded during version exchange", phase.value, exc) from exc
        except OSError as exc:
            raise SSHHandshakeError(f"I/O error during version exchange: {exc}", phase.value, exc) from exc
        raise SSHHandshakeError(
            f"no SSH identification string within {MAX_PRE_BANNER_LINES} lines",
            phase.value,
        )

    def _read_line(
        self,
        sock: socket.socket,
        buffer: bytearray,
        deadline: Deadline,
        cancel: Optional[threading.Event],
    ) -> bytes:
        phase = HandshakePhase.VERSION_EXCHANGE.value
        while True:
            end = buffer.find(b"\n")
            if end + 1 > MAX_IDENTIFICATION_LENGTH or (end < 0 and len(buffer) > MAX_IDENTIFICATION_LENGTH):
                raise SSHHandshakeError(
                    f"identification line exceeds {MAX_IDENTIFICATION_LENGTH} bytes",
                    phase,
                )
            if end >= 0:
                line = bytes(buffer[: end + 1])
                del buffer[: end + 1]
                return line
            self._check_interrupted(deadline, cancel, HandshakePhase.VERSION_EXCHANGE)
            sock.settimeout(_poll_timeout(deadline))
            try:
                chunk = sock.recv(1024)
            except socket.timeout:
                continue
            if not chunk:
                raise SSHHandshakeError("connection closed before the server identification string", phase)
            buffer.extend(chunk)

    def _check_identification(self, banner: str) -> None:
        # SSH-protoversion-softwareversion SP comments
        identification = banner.split(" ", 1)[0]
        parts = identification.split("-", 2)
        if len(parts) < 3 or not parts[1] or not parts[2]:
            raise SSHHandshakeError(
                "malformed SSH identification string",
                HandshakePhase.VERSION_EXCHANGE.value,
            )

    # -------------------------------------------------------------------------
    # Key exchange
    # -------------------------------------------------------------------------

    def _create_transport(self, sock: socket.socket) -> paramiko.Transport:
        transport = self.transport_factory(sock)
        self.transport = transport
        transport.local_version = self.config.client_id

        transport._kex_info = dict(transport._kex_info, **bound_kex_classes(self.config, self.observation))

        options = transport.get_security_options()
        for attribute, setting_key, algorithms in (
            ("kex", "kex_algorithms", self.config.kex_algorithms),
            ("key_types", "host_key_algorithms", self.config.host_key_algorithms),
            ("ciphers", "ciphers", self.config.ciphers),
            ("digests", "macs", self.config.macs),
        ):
            try:
                setattr(options, attribute, tuple(algorithms))
            except ValueError as exc:
                raise SSHConfigurationError(
                    f"transport does not implement a configured algorithm: {exc}",
                    setting_key=setting_key,
                    setting_value=",".join(algorithms),
                ) from exc
        return transport

    def _apply_transport_timeouts(self, transport: paramiko.Transport, deadline: Deadline) -> None:
        remaining = deadline.remaining()
        if remaining is None:
            return
        timeout = remaining + TRANSPORT_TIMEOUT_GRACE
        transport.banner_timeout = timeout
        transport.handshake_timeout = timeout
        transport.auth_timeout = timeout

    def _transport_phase(self, transport: paramiko.Transport) -> HandshakePhase:
        if transport.remote_version:
            return HandshakePhase.KEY_EXCHANGE
        return HandshakePhase.VERSION_EXCHANGE

    def _key_exchange(
        self,
        transport: paramiko.Transport,
        deadline: Deadline,
        cancel: Optional[threading.Event],
    ) -> None:
        self.phase = HandshakePhase.VERSION_EXCHANGE
        self._apply_transport_timeouts(transport, deadline)
        completed = threading.Event()
        transport.start_client(event=completed)
        try:
            while not completed.is_set() and transport.is_active():
                self._check_interrupted(deadline, cancel, self._transport_phase(transport))
                completed.wait(_poll_timeout(deadline))
        finally:
            self._record_banner(transport)

        self.phase = self._transport_phase(transport)
        if not transport.is_active():
            cause = transport.get_exception() or paramiko.SSHException("Negotiation failed.")
            raise SSHHandshakeError(
                f"{self.phase.value.replace('_', ' ')} failed: {cause}",
                self.phase.value,
                cause,
            ) from cause

        self.phase = HandshakePhase.KEY_EXCHANGE
        self._record_key_exchange(transport)

    def _record_banner(self, transport: paramiko.Transport) -> None:
        if transport.remote_version and self.log.banner is None:
            self.log.record_banner(transport.remote_version)
            logger.debug(
                "Received banner from %s: %s",
                sanitize_target_for_log(self.hostname),
                sanitize_banner_for_log(self.log.banner),
            )

    def _record_key_exchange(self, transport: paramiko.Transport) -> None:
        verbose = self.config.verbose
        observation = self.observation
        if observation.remote_kex_init is None or observation.local_kex_init is None:
            raise SSHHandshakeError(
                "key exchange completed without a captured KEXINIT",
                HandshakePhase.KEY_EXCHANGE.value,
            )
        server = parse_kex_init(observation.remote_kex_init, include_cookie=verbose)
        client = parse_kex_init(observation.local_kex_init, include_cookie=verbose)
        self._server_kex_init = server
        self.log.record_kex_init(server, client if verbose else None)

        selection = None
        try:
            selection = negotiate(client, server)
        except ValueError as exc:
            self.log.add_diagnostic(
                HandshakePhase.KEY_EXCHANGE,
                f"could not derive agreed algorithms: {exc}",
                level="warning",
            )
        else:
            self.log.record_selection(selection)

        key = transport.get_remote_server_key()
        algorithm = selection.host_key if selection is not None else key.get_name()
        self.log.record_host_key(self.host_key_policy.observe(self.hostname, algorithm, key))

        if selection is not None and selection.kex in GROUP_EXCHANGE_KEX:
            self.log.record_group_exchange(
                GroupExchangeRecord(
                    min_bits=self.config.gex_min_bits,
                    preferred_bits=self.config.gex_preferred_bits,
                    max_bits=self.config.gex_max_bits,
                    prime_bits=self.observation.prime_bits,
                )
            )

    # -------------------------------------------------------------------------
    # Extension negotiation (RFC 8308)
    # -------------------------------------------------------------------------

    def _collect_extensions(
        self,
        transport: paramiko.Transport,
        deadline: Deadline,
        cancel: Optional[threading.Event],
    ) -> None:
        phase = HandshakePhase.EXTENSION_NEGOTIATION
        self.phase = phase

        if self._server_kex_init is not None and server_supports_ext_info(self._server_kex_init):
            # EXT_INFO follows the server's NEWKEYS, possibly after key
            # exchange has already been reported complete.
            window = Deadline(self.config.ext_info_wait)
            waiter = threading.Event()
            while not transport.server_extensions and not window.expired():
                self._check_interrupted(deadline, cancel, phase)
                if not transport.is_active():
                    cause = transport.get_exception() or EOFError("connection closed by remote host")
                    raise SSHHandshakeError(f"connection lost waiting for EXT_INFO: {cause}", phase.value, cause)
                waiter.wait(POLL_INTERVAL)
        else:
            self.log.add_diagnostic(phase, "server did not offer ext-info-s")

        extensions = dict(transport.server_extensions or {})
        server_sig_algs = None
        if "server-sig-algs" in extensions:
            server_sig_algs = [name for name in _decode(extensions["server-sig-algs"]).split(",") if name]
        self.log.record_extensions(list(extensions), server_sig_algs)
        if not extensions:
            self.log.add_diagnostic(phase, "no extensions advertised")

    # -------------------------------------------------------------------------
    # Userauth probe
    # -------------------------------------------------------------------------

    def _probe_userauth(
        self,
        transport: paramiko.Transport,
        deadline: Deadline,
        cancel: Optional[threading.Event],
    ) -> None:
        phase = HandshakePhase.USERAUTH_PROBE
        self.phase = phase
        self._check_interrupted(deadline, cancel, phase)
        self._apply_transport_timeouts(transport, deadline)

        with _Watchdog(transport, deadline, cancel) as watchdog:
            try:
                transport.auth_none(self.config.userauth_username)
            except paramiko.BadAuthenticationType as exc:
                # The expected outcome: "none" rejected with the method list.
                self.log.record_userauth(list(exc.allowed_types or []))
                return
            except (paramiko.SSHException, EOFError, OSError) as exc:
                if watchdog.fired:
                    self._check_interrupted(deadline, cancel, phase)
                raise SSHHandshakeError(f"userauth probe failed: {exc}", phase.value, exc) from exc

        self.log.record_userauth(["none"])
        self.log.add_diagnostic(
            phase,
            "server accepted 'none' authentication; no further requests sent",
            level="warning",
        )
        logger.info("Server %s accepted 'none' authentication", sanitize_target_for_log(self.hostname))

    # -------------------------------------------------------------------------
    # Deadline and cancellation
    # -------------------------------------------------------------------------

    @staticmethod
    def _check_interrupted(deadline: Deadline, cancel: Optional[threading.Event], phase: HandshakePhase) -> None:
        if cancel is not None and cancel.is_set():
            raise SSHProbeTimeout("probe cancelled", phase.value)
        if deadline.expired():
            raise SSHProbeTimeout(f"deadline exceeded during {phase.value.replace('_', ' ')}", phase.value)


__all__ = [
    "HandshakeDriver",
    "bound_kex_classes",
    "KexObservation",
    "POLL_INTERVAL",
    "MAX_PRE_BANNER_LINES",
    "MAX_IDENTIFICATION_LENGTH",
]
