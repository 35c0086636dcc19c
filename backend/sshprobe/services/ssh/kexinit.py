"""
KEXINIT Parsing and Algorithm Agreement

Decodes SSH_MSG_KEXINIT payloads (RFC 4253 section 7.1) into KexInitRecord
and computes the algorithms both sides agree on: for every category the
first client algorithm that the server also lists.
"""

import logging
from typing import Optional, Sequence

from paramiko import Message
from paramiko.common import cMSG_KEXINIT

from .algorithms import AEAD_CIPHERS
from .models import AlgorithmSelection, KexInitRecord

logger = logging.getLogger(__name__)

# Signalling names carried in the kex list; never selectable as algorithms.
PSEUDO_KEX_PREFIXES = ("ext-info-", "kex-strict-")

EXT_INFO_SERVER = "ext-info-s"


def _name_list(message: Message) -> list:
    return [name for name in message.get_list() if name]


def parse_kex_init(payload: bytes, include_cookie: bool = False) -> KexInitRecord:
    """
    Parse a raw KEXINIT message.

    Args:
        payload: The message including its leading type byte
        include_cookie: Keep the random 16 byte cookie (hex encoded)

    Returns:
        KexInitRecord with every advertised name list

    Raises:
        ValueError: If the payload is not a KEXINIT message
    """
    message = Message(payload)
    if message.get_byte() != cMSG_KEXINIT:
        raise ValueError("payload is not an SSH_MSG_KEXINIT message")
    cookie = message.get_bytes(16)
    record = KexInitRecord(
        kex_algorithms=_name_list(message),
        host_key_algorithms=_name_list(message),
        client_to_server_ciphers=_name_list(message),
        server_to_client_ciphers=_name_list(message),
        client_to_server_macs=_name_list(message),
        server_to_client_macs=_name_list(message),
        client_to_server_compression=_name_list(message),
        server_to_client_compression=_name_list(message),
        cookie=cookie.hex() if include_cookie else None,
    )
    # languages, both directions
    message.get_list()
    message.get_list()
    record.first_kex_follows = message.get_boolean()
    return record


def agree(client: Sequence[str], server: Sequence[str]) -> Optional[str]:
    """Return the first client algorithm the server also supports."""
    for name in client:
        if name in server:
            return name
    return None


def server_supports_ext_info(server: KexInitRecord) -> bool:
    return EXT_INFO_SERVER in server.kex_algorithms


def negotiate(client: KexInitRecord, server: KexInitRecord) -> AlgorithmSelection:
    """
    Compute the agreed algorithms from both KEXINIT messages.

    Raises:
        ValueError: If kex, host key or cipher have no common algorithm
    """
    client_kex = [name for name in client.kex_algorithms if not name.startswith(PSEUDO_KEX_PREFIXES)]
    kex = agree(client_kex, server.kex_algorithms)
    host_key = agree(client.host_key_algorithms, server.host_key_algorithms)
    c2s_cipher = agree(client.client_to_server_ciphers, server.client_to_server_ciphers)
    s2c_cipher = agree(client.server_to_client_ciphers, server.server_to_client_ciphers)

    for category, value in (
        ("kex", kex),
        ("host key", host_key),
        ("client to server cipher", c2s_cipher),
        ("server to client cipher", s2c_cipher),
    ):
        if value is None:
            raise ValueError(f"no common {category} algorithm")

    c2s_mac = None
    if c2s_cipher not in AEAD_CIPHERS:
        c2s_mac = agree(client.client_to_server_macs, server.client_to_server_macs)
    s2c_mac = None
    if s2c_cipher not in AEAD_CIPHERS:
        s2c_mac = agree(client.server_to_client_macs, server.server_to_client_macs)

    return AlgorithmSelection(
        kex=kex,
        host_key=host_key,
        client_to_server_cipher=c2s_cipher,
        server_to_client_cipher=s2c_cipher,
        client_to_server_mac=c2s_mac,
        server_to_client_mac=s2c_mac,
        client_to_server_compression=agree(
            client.client_to_server_compression, server.client_to_server_compression
        ),
        server_to_client_compression=agree(
            client.server_to_client_compression, server.server_to_client_compression
        ),
    )


__all__ = [
    "PSEUDO_KEX_PREFIXES",
    "EXT_INFO_SERVER",
    "parse_kex_init",
    "agree",
    "server_supports_ext_info",
    "negotiate",
]
