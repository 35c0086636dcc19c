"""
Fixtures for SSH probe unit tests.

Provides KEXINIT payload builders and a FakeTransport standing in for
paramiko.Transport, so the handshake driver can be exercised without a
network peer.
"""

import time
from typing import Any, Dict, List, Optional, Sequence

import paramiko
import pytest
from paramiko import Message
from paramiko.common import cMSG_KEXINIT

from sshprobe.services.ssh.kexinit import parse_kex_init

# =============================================================================
# KEXINIT Builders
# =============================================================================

SERVER_KEX = [
    "curve25519-sha256",
    "curve25519-sha256@libssh.org",
    "ecdh-sha2-nistp256",
    "diffie-hellman-group14-sha256",
    "ext-info-s",
    "kex-strict-s-v00@openssh.com",
]
SERVER_HOST_KEYS = ["ecdsa-sha2-nistp256", "rsa-sha2-512", "rsa-sha2-256"]
SERVER_CIPHERS = ["chacha20-poly1305@openssh.com", "aes256-gcm@openssh.com", "aes128-ctr"]
SERVER_MACS = ["umac-64-etm@openssh.com", "hmac-sha2-256-etm@openssh.com", "hmac-sha1"]

PARAMIKO_KEX = [
    "curve25519-sha256@libssh.org",
    "ecdh-sha2-nistp256",
    "ecdh-sha2-nistp384",
    "ecdh-sha2-nistp521",
    "diffie-hellman-group16-sha512",
    "diffie-hellman-group14-sha256",
    "diffie-hellman-group14-sha1",
    "diffie-hellman-group1-sha1",
    "diffie-hellman-group-exchange-sha256",
    "diffie-hellman-group-exchange-sha1",
]


def build_kex_init(
    kex: Sequence[str],
    host_keys: Sequence[str],
    ciphers: Sequence[str],
    macs: Sequence[str],
    compression: Sequence[str] = ("none",),
    first_kex_follows: bool = False,
    cookie: bytes = bytes(range(16)),
) -> bytes:
    """
    Encode an SSH_MSG_KEXINIT payload with the same lists in both directions.
    """
    message = Message()
    message.add_byte(cMSG_KEXINIT)
    message.add_bytes(cookie)
    message.add_list(list(kex))
    message.add_list(list(host_keys))
    message.add_list(list(ciphers))
    message.add_list(list(ciphers))
    message.add_list(list(macs))
    message.add_list(list(macs))
    message.add_list(list(compression))
    message.add_list(list(compression))
    message.add_list([])
    message.add_list([])
    message.add_boolean(first_kex_follows)
    message.add_int(0)
    return message.asbytes()


SERVER_KEX_INIT = build_kex_init(SERVER_KEX, SERVER_HOST_KEYS, SERVER_CIPHERS, SERVER_MACS)


# =============================================================================
# Fake Transport
# =============================================================================


class FakeSecurityOptions:
    """Records preference tuples; rejects names listed in `reject` like paramiko does."""

    def __init__(self, reject: Sequence[str] = ()) -> None:
        object.__setattr__(self, "_reject", set(reject))

    def __setattr__(self, name: str, value: Any) -> None:
        if any(item in self._reject for item in value):
            raise ValueError("unknown cipher")
        object.__setattr__(self, name, value)


class FakeTransport:
    """
    Stand-in for paramiko.Transport.

    start_client() completes synchronously unless `hang` is set. The client
    KEXINIT is built from whatever preferences the driver applied, so tests
    can check that the configured lists reached the transport. The kex class
    registered for the agreed algorithm is started like paramiko does, and
    both KEXINIT payloads are cleared before the completion event fires.
    """

    def __init__(
        self,
        sock,
        host_key: paramiko.PKey,
        remote_version: str = "SSH-2.0-OpenSSH_9.6p1 Ubuntu-3ubuntu13",
        server_kex_init: bytes = SERVER_KEX_INIT,
        fail_with: Optional[BaseException] = None,
        banner_before_failure: bool = True,
        server_extensions: Optional[Dict[str, bytes]] = None,
        extensions_after: Optional[float] = None,
        drop_before_extensions: bool = False,
        auth_error: Optional[BaseException] = paramiko.BadAuthenticationType(
            "Bad authentication type", ["publickey", "password"]
        ),
        hang: bool = False,
        hang_auth: bool = False,
        reject_algorithms: Sequence[str] = (),
        gex_prime: Optional[int] = None,
        host_key_error: Optional[BaseException] = None,
    ) -> None:
        self.sock = sock
        self.host_key = host_key
        self._kex_info = {name: object for name in PARAMIKO_KEX}
        self.security_options = FakeSecurityOptions(reject_algorithms)
        self.local_version = "SSH-2.0-paramiko_3.4.0"
        self.remote_version = ""
        self.local_kex_init: Optional[bytes] = None
        self.remote_kex_init: Optional[bytes] = None
        self.server_extensions: Dict[str, bytes] = {}
        self.banner_timeout = 15
        self.handshake_timeout = 15
        self.auth_timeout = 30
        self.active = False
        self.closed = False
        self.saved_exception: Optional[BaseException] = None
        self.auth_none_calls: List[str] = []
        self.started_at: Optional[float] = None
        self._active_checks = 0
        self.server_mode = False
        self.sent_messages: List[Message] = []
        self.kex_engine = None

        self._remote_version = remote_version
        self._server_kex_init = server_kex_init
        self._fail_with = fail_with
        self._banner_before_failure = banner_before_failure
        self._server_extensions = server_extensions
        self._extensions_after = extensions_after
        self._drop_before_extensions = drop_before_extensions
        self._auth_error = auth_error
        self._hang = hang
        self._hang_auth = hang_auth
        self._gex_prime = gex_prime
        self._host_key_error = host_key_error

    def get_security_options(self) -> FakeSecurityOptions:
        return self.security_options

    def start_client(self, event=None, timeout=None) -> None:
        self.active = True
        self.started_at = time.monotonic()
        if self._hang:
            return
        if self._fail_with is not None:
            if self._banner_before_failure:
                self.remote_version = self._remote_version
            self.saved_exception = self._fail_with
            self.active = False
            return
        self.remote_version = self._remote_version
        options = self.security_options
        self.local_kex_init = build_kex_init(
            list(options.kex) + ["ext-info-c", "kex-strict-c-v00@openssh.com"],
            options.key_types,
            options.ciphers,
            options.digests,
        )
        self.remote_kex_init = self._server_kex_init
        if not self._run_kex_engine():
            return
        # paramiko discards both payloads on NEWKEYS, before signalling completion
        self.local_kex_init = self.remote_kex_init = None
        if self._server_extensions is not None and self._extensions_after is None:
            self.server_extensions = dict(self._server_extensions)
        event.set()

    def _run_kex_engine(self) -> bool:
        server_kex = parse_kex_init(self._server_kex_init).kex_algorithms
        agreed = [name for name in self.security_options.kex if name in server_kex]
        if not agreed:
            self.saved_exception = paramiko.SSHException("Incompatible ssh peer (no acceptable kex algorithm)")
            self.active = False
            return False
        self.kex_engine = self._kex_info[agreed[0]](self)
        self.kex_engine.start_kex()
        if self._gex_prime is not None:
            group = Message()
            group.add_mpint(self._gex_prime)
            group.add_mpint(2)
            group.rewind()
            self.kex_engine._parse_kexdh_gex_group(group)
        return True

    def _send_message(self, message: Message) -> None:
        self.sent_messages.append(message)

    def _expect_packet(self, *ptypes) -> None:
        pass

    def _log(self, level, message) -> None:
        pass

    def is_active(self) -> bool:
        self._active_checks += 1
        # the first check follows key exchange; later ones come from the EXT_INFO wait
        if self._drop_before_extensions and self._active_checks > 1:
            self.active = False
        if (
            self.active
            and self._extensions_after is not None
            and time.monotonic() - self.started_at >= self._extensions_after
        ):
            self.server_extensions = dict(self._server_extensions or {})
        return self.active

    def get_exception(self) -> Optional[BaseException]:
        return self.saved_exception

    def get_remote_server_key(self) -> paramiko.PKey:
        if self._host_key_error is not None:
            raise self._host_key_error
        return self.host_key

    def auth_none(self, username: str) -> List[str]:
        self.auth_none_calls.append(username)
        if self._hang_auth:
            while self.active:
                time.sleep(0.01)
            raise EOFError()
        if self._auth_error is not None:
            raise self._auth_error
        return []

    def auth_password(self, *args, **kwargs):
        raise AssertionError("auth_password must never be called by the probe")

    def auth_publickey(self, *args, **kwargs):
        raise AssertionError("auth_publickey must never be called by the probe")

    def auth_interactive(self, *args, **kwargs):
        raise AssertionError("auth_interactive must never be called by the probe")

    def open_session(self, *args, **kwargs):
        raise AssertionError("the probe must never open a channel")

    def close(self) -> None:
        self.closed = True
        self.active = False


class FakeTransportFactory:
    """Callable passed as transport_factory; keeps every transport it creates."""

    def __init__(self, host_key: paramiko.PKey) -> None:
        self.host_key = host_key
        self.options: Dict[str, Any] = {}
        self.created: List[FakeTransport] = []

    def __call__(self, sock) -> FakeTransport:
        transport = FakeTransport(sock, host_key=self.host_key, **self.options)
        self.created.append(transport)
        return transport

    @property
    def last(self) -> FakeTransport:
        return self.created[-1]


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def ecdsa_host_key() -> paramiko.ECDSAKey:
    """
    Generate one ECDSA P-256 key for the whole test session.

    Returns:
        paramiko.ECDSAKey used as the server host key
    """
    return paramiko.ECDSAKey.generate()


@pytest.fixture
def transport_factory(ecdsa_host_key: paramiko.ECDSAKey) -> FakeTransportFactory:
    """
    Provide a FakeTransport factory; set `.options` to shape the fake server.

    Returns:
        FakeTransportFactory using the session ECDSA host key
    """
    return FakeTransportFactory(ecdsa_host_key)


@pytest.fixture
def kex_init_builder():
    """Provide build_kex_init to tests."""
    return build_kex_init
