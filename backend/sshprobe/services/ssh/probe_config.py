"""
Probe Configuration Assembler

Turns operator-supplied SSHFlags into the immutable ProbeConfig consumed by
the handshake driver. Every algorithm preference string is validated
against the catalog and against the algorithms the installed paramiko
transport implements; any failure aborts assembly for the whole run before a
single target is dialed, since the same flags apply to every target.

Usage:
    from sshprobe.services.ssh.flags import SSHFlags
    from sshprobe.services.ssh.probe_config import build_probe_config

    config = build_probe_config(SSHFlags(ciphers="aes256-ctr", collect_userauth=True))
"""

import logging
from typing import Dict, FrozenSet, Sequence

import paramiko

from .algorithms import (
    CURVE25519_LIBSSH,
    CURVE25519_RFC8731,
    SUPPORTED_CIPHERS,
    SUPPORTED_HOST_KEY_ALGORITHMS,
    SUPPORTED_KEX_ALGORITHMS,
    SUPPORTED_MACS,
    validate_algorithms,
)
from .exceptions import SSHConfigurationError
from .flags import SSHFlags
from .models import ProbeConfig

logger = logging.getLogger(__name__)


def transport_capabilities() -> Dict[str, FrozenSet[str]]:
    """
    Algorithm names the installed paramiko transport can negotiate, per setting.

    curve25519 depends on the cryptography build, so the tables are read
    from paramiko rather than assumed. The RFC 8731 name is available
    whenever the libssh name is.
    """
    kex = set(paramiko.Transport._kex_info)
    if CURVE25519_LIBSSH in kex:
        kex.add(CURVE25519_RFC8731)
    return {
        "kex_algorithms": frozenset(kex),
        "host_key_algorithms": frozenset(paramiko.Transport._key_info),
        "ciphers": frozenset(paramiko.Transport._cipher_info),
        "macs": frozenset(paramiko.Transport._mac_info),
    }


def _check_transport_support(setting_key: str, algorithms: Sequence[str], available: FrozenSet[str]) -> None:
    for algorithm in algorithms:
        if algorithm not in available:
            raise SSHConfigurationError(
                f'algorithm not implemented by the installed paramiko transport: "{algorithm}"',
                setting_key=setting_key,
                setting_value=",".join(algorithms),
            )


def build_probe_config(flags: SSHFlags) -> ProbeConfig:
    """
    Assemble a ProbeConfig from raw flags.

    Args:
        flags: Parsed command-line level options

    Returns:
        ProbeConfig with validated preference lists and copied policy flags

    Raises:
        SSHConfigurationError: If any preference token is not in the catalog
            (AlgorithmNotSupportedError), is missing from the installed
            paramiko transport, or the group exchange bounds do not satisfy
            min <= preferred <= max
    """
    kex_algorithms = validate_algorithms(flags.kex_algorithms, SUPPORTED_KEX_ALGORITHMS, "kex_algorithms")
    host_key_algorithms = validate_algorithms(
        flags.host_key_algorithms, SUPPORTED_HOST_KEY_ALGORITHMS, "host_key_algorithms"
    )
    ciphers = validate_algorithms(flags.ciphers, SUPPORTED_CIPHERS, "ciphers")
    macs = validate_algorithms(flags.macs, SUPPORTED_MACS, "macs")

    capabilities = transport_capabilities()
    for setting_key, algorithms in (
        ("kex_algorithms", kex_algorithms),
        ("host_key_algorithms", host_key_algorithms),
        ("ciphers", ciphers),
        ("macs", macs),
    ):
        _check_transport_support(setting_key, algorithms, capabilities[setting_key])

    if not flags.gex_min_bits <= flags.gex_preferred_bits <= flags.gex_max_bits:
        raise SSHConfigurationError(
            "DH group exchange bounds must satisfy min <= preferred <= max",
            setting_key="gex_bits",
            setting_value=f"{flags.gex_min_bits}/{flags.gex_preferred_bits}/{flags.gex_max_bits}",
        )

    config = ProbeConfig(
        client_id=flags.client_id,
        kex_algorithms=tuple(kex_algorithms),
        host_key_algorithms=tuple(host_key_algorithms),
        ciphers=tuple(ciphers),
        macs=tuple(macs),
        hello_only=flags.hello_only,
        collect_extensions=flags.collect_extensions,
        collect_userauth=flags.collect_userauth,
        gex_min_bits=flags.gex_min_bits,
        gex_preferred_bits=flags.gex_preferred_bits,
        gex_max_bits=flags.gex_max_bits,
        timeout=flags.connect_timeout,
        userauth_username=flags.userauth_username,
        verbose=flags.verbose,
        ext_info_wait=flags.ext_info_wait,
    )
    logger.debug(
        "Probe configuration assembled: %d kex, %d host key, %d cipher, %d mac algorithms",
        len(config.kex_algorithms),
        len(config.host_key_algorithms),
        len(config.ciphers),
        len(config.macs),
    )
    return config


__all__ = ["build_probe_config", "transport_capabilities"]
