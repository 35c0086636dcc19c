"""
sshprobe - SSH handshake probe

Collects SSH server banners, key exchange offers, host keys, RFC 8308
extensions and advertised userauth methods without ever authenticating.
"""

__version__ = "1.0.0"
