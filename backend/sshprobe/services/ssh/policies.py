"""
SSH Host Key Policy

The probe observes host keys, it never trusts or rejects them. Host key
verification is therefore replaced by a named policy that accepts whatever
key the server presents, logs its fingerprint and hands a HostKeyRecord back
to the handshake log. It exists so the posture is explicit in the code and
cannot be mistaken for a missing trust check.

Usage:
    from sshprobe.services.ssh.policies import AcceptAnyHostKeyPolicy

    policy = AcceptAnyHostKeyPolicy()
    record = policy.observe(hostname, "ssh-ed25519", transport.get_remote_server_key())
"""

import base64
import hashlib
import logging
from typing import Callable, Optional

import paramiko

from ...utils.logging_security import sanitize_for_log
from .models import HostKeyRecord

logger = logging.getLogger(__name__)


def fingerprint_sha256(key_blob: bytes) -> str:
    """Return an OpenSSH style "SHA256:<base64>" fingerprint."""
    digest = hashlib.sha256(key_blob).digest()
    return "SHA256:" + base64.b64encode(digest).decode().rstrip("=")


def fingerprint_md5(key_blob: bytes) -> str:
    """Return a colon separated MD5 fingerprint."""
    digest = hashlib.md5(key_blob).hexdigest()
    return ":".join(digest[i : i + 2] for i in range(0, len(digest), 2))


class AcceptAnyHostKeyPolicy(paramiko.MissingHostKeyPolicy):
    """
    Accept every host key without verification.

    This is the scanning posture of the probe: the goal is to record which
    key a server presents, not to establish trust in it. The policy never
    raises, never consults known_hosts and never stores keys.

    Attributes:
        audit_callback: Optional function called with (hostname, key_type, fingerprint)
        include_public_key: Also record the base64 public key blob
    """

    def __init__(
        self,
        audit_callback: Optional[Callable[[str, str, str], None]] = None,
        include_public_key: bool = True,
    ) -> None:
        self.audit_callback = audit_callback
        self.include_public_key = include_public_key

    def missing_host_key(self, client, hostname: str, key: paramiko.PKey) -> None:
        """
        paramiko.SSHClient hook; accepts the key.

        The probe drives a bare Transport, so this is only reached if the
        policy is installed on an SSHClient.
        """
        self.observe(hostname, key.get_name(), key)

    def observe(self, hostname: str, algorithm: str, key: paramiko.PKey) -> HostKeyRecord:
        """
        Accept a server host key and describe it.

        Args:
            hostname: Target host the key was presented by
            algorithm: Negotiated host key algorithm (e.g. rsa-sha2-512)
            key: The key presented by the server

        Returns:
            HostKeyRecord with type, size and fingerprints of the key
        """
        blob = key.asbytes()
        bits = None
        try:
            bits = key.get_bits()
        except (AttributeError, ValueError, TypeError):
            logger.debug("Key size unavailable for %s key", key.get_name())

        record = HostKeyRecord(
            algorithm=algorithm,
            key_type=key.get_name(),
            fingerprint_sha256=fingerprint_sha256(blob),
            fingerprint_md5=fingerprint_md5(blob),
            bits=bits or None,
            public_key=base64.b64encode(blob).decode() if self.include_public_key else None,
        )

        logger.debug(
            "Accepted host key for %s without verification (type: %s, fingerprint: %s)",
            sanitize_for_log(hostname),
            record.key_type,
            record.fingerprint_sha256,
        )

        if self.audit_callback:
            self.audit_callback(hostname, record.key_type, record.fingerprint_sha256)

        return record


__all__ = [
    "AcceptAnyHostKeyPolicy",
    "fingerprint_sha256",
    "fingerprint_md5",
]
