"""
SSH Algorithm Catalog and Preference Validation

The catalog lists every algorithm identifier the probe can offer during key
exchange, one immutable tuple per category. It is restricted to what the
paramiko transport can actually negotiate, plus the RFC 8731 name
"curve25519-sha256" which the handshake driver registers as an alias of the
libssh name.

Preference strings supplied by the operator are comma-separated and are
validated token by token against the relevant catalog tuple. Order encodes
descending precedence and is preserved exactly.

Usage:
    from sshprobe.services.ssh.algorithms import SUPPORTED_CIPHERS, validate_algorithms

    ciphers = validate_algorithms("aes256-ctr,aes128-ctr", SUPPORTED_CIPHERS)
"""

from typing import Iterable, List, Optional

from .exceptions import AlgorithmNotSupportedError

SUPPORTED_KEX_ALGORITHMS = (
    "curve25519-sha256",
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
)

SUPPORTED_HOST_KEY_ALGORITHMS = (
    "ssh-ed25519",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
    "rsa-sha2-512",
    "rsa-sha2-256",
    "ssh-rsa",
    "ssh-dss",
    "ssh-ed25519-cert-v01@openssh.com",
    "ecdsa-sha2-nistp256-cert-v01@openssh.com",
    "ecdsa-sha2-nistp384-cert-v01@openssh.com",
    "ecdsa-sha2-nistp521-cert-v01@openssh.com",
    "rsa-sha2-512-cert-v01@openssh.com",
    "rsa-sha2-256-cert-v01@openssh.com",
    "ssh-rsa-cert-v01@openssh.com",
    "ssh-dss-cert-v01@openssh.com",
)

SUPPORTED_CIPHERS = (
    "aes128-gcm@openssh.com",
    "aes256-gcm@openssh.com",
    "aes128-ctr",
    "aes192-ctr",
    "aes256-ctr",
    "aes128-cbc",
    "aes192-cbc",
    "aes256-cbc",
    "3des-cbc",
)

SUPPORTED_MACS = (
    "hmac-sha2-256-etm@openssh.com",
    "hmac-sha2-512-etm@openssh.com",
    "hmac-sha2-256",
    "hmac-sha2-512",
    "hmac-sha1",
    "hmac-sha1-96",
    "hmac-md5",
    "hmac-md5-96",
)

# Ciphers with integrated authentication; the negotiated MAC is unused.
AEAD_CIPHERS = frozenset(
    {
        "aes128-gcm@openssh.com",
        "aes256-gcm@openssh.com",
        "chacha20-poly1305@openssh.com",
    }
)

# RFC 8731 standardized the libssh name; both use the same exchange.
CURVE25519_RFC8731 = "curve25519-sha256"
CURVE25519_LIBSSH = "curve25519-sha256@libssh.org"

GROUP_EXCHANGE_KEX = frozenset(
    {
        "diffie-hellman-group-exchange-sha1",
        "diffie-hellman-group-exchange-sha256",
    }
)

DEFAULT_KEX_ALGORITHMS = ",".join(
    (
        "curve25519-sha256",
        "curve25519-sha256@libssh.org",
        "ecdh-sha2-nistp256",
        "ecdh-sha2-nistp384",
        "ecdh-sha2-nistp521",
        "diffie-hellman-group14-sha256",
        "diffie-hellman-group14-sha1",
        "diffie-hellman-group1-sha1",
        "diffie-hellman-group-exchange-sha256",
        "diffie-hellman-group-exchange-sha1",
    )
)

DEFAULT_HOST_KEY_ALGORITHMS = ",".join(
    (
        "ssh-ed25519",
        "ecdsa-sha2-nistp256",
        "ecdsa-sha2-nistp384",
        "ecdsa-sha2-nistp521",
        "rsa-sha2-512",
        "rsa-sha2-256",
        "ssh-rsa",
        "ssh-dss",
    )
)

DEFAULT_CIPHERS = ",".join(SUPPORTED_CIPHERS)

DEFAULT_MACS = ",".join(
    (
        "hmac-sha2-256-etm@openssh.com",
        "hmac-sha2-256",
        "hmac-sha1",
        "hmac-sha1-96",
    )
)


def validate_algorithms(
    value: str,
    supported: Iterable[str],
    setting_key: Optional[str] = None,
) -> List[str]:
    """
    Parse a comma-separated preference string against a catalog tuple.

    Tokens are not trimmed: "aes128-ctr, aes256-ctr" fails on " aes256-ctr".
    Duplicates are kept. The empty string yields one empty token, which no
    catalog contains.

    Args:
        value: Comma-separated algorithm identifiers in descending precedence
        supported: The catalog tuple for this category
        setting_key: Name of the originating setting, used in the error

    Returns:
        The identifiers in the order supplied

    Raises:
        AlgorithmNotSupportedError: On the first token not in the catalog.
            No partial list is returned.

    Example:
        >>> validate_algorithms("hmac-sha1,hmac-sha2-256", SUPPORTED_MACS)
        ['hmac-sha1', 'hmac-sha2-256']
    """
    algorithms = []
    for algorithm in value.split(","):
        if algorithm not in supported:
            raise AlgorithmNotSupportedError(algorithm, setting_key=setting_key)
        algorithms.append(algorithm)
    return algorithms


__all__ = [
    "SUPPORTED_KEX_ALGORITHMS",
    "SUPPORTED_HOST_KEY_ALGORITHMS",
    "SUPPORTED_CIPHERS",
    "SUPPORTED_MACS",
    "AEAD_CIPHERS",
    "GROUP_EXCHANGE_KEX",
    "CURVE25519_RFC8731",
    "CURVE25519_LIBSSH",
    "DEFAULT_KEX_ALGORITHMS",
    "DEFAULT_HOST_KEY_ALGORITHMS",
    "DEFAULT_CIPHERS",
    "DEFAULT_MACS",
    "validate_algorithms",
]
