"""
SSH Probe Flags

Raw, operator-supplied inputs for the SSH scan module, before validation.
The CLI (or any other front end) fills an SSHFlags instance; the probe
configuration assembler turns it into an immutable ProbeConfig.
"""

from pydantic import BaseModel, Field

from .algorithms import DEFAULT_CIPHERS, DEFAULT_HOST_KEY_ALGORITHMS, DEFAULT_KEX_ALGORITHMS, DEFAULT_MACS

DEFAULT_CLIENT_ID = "SSH-2.0-sshprobe"


class SSHFlags(BaseModel):
    """Command-line level options of the SSH scan module."""

    client_id: str = Field(default=DEFAULT_CLIENT_ID, description="Specify the client ID string to use.")
    kex_algorithms: str = Field(
        default=DEFAULT_KEX_ALGORITHMS,
        description="A comma-separated list of kex algorithms to offer in descending precedence.",
    )
    host_key_algorithms: str = Field(
        default=DEFAULT_HOST_KEY_ALGORITHMS,
        description="A comma-separated list of host key algorithms to offer in descending precedence.",
    )
    ciphers: str = Field(
        default=DEFAULT_CIPHERS,
        description="A comma-separated list of cipher algorithms to offer in descending precedence.",
    )
    macs: str = Field(
        default=DEFAULT_MACS,
        description="A comma-separated list of MAC algorithms to offer in descending precedence.",
    )
    collect_extensions: bool = Field(
        default=False,
        description="Complete the SSH transport layer protocol to collect SSH extensions as per RFC 8308 (if any).",
    )
    collect_userauth: bool = Field(
        default=False,
        description="Use the 'none' authentication request to see what userauth methods are allowed.",
    )
    userauth_username: str = Field(default="root", description="User name sent in the 'none' authentication request.")
    gex_min_bits: int = Field(default=1024, ge=0, description="The minimum number of bits for the DH GEX prime.")
    gex_max_bits: int = Field(default=8192, ge=0, description="The maximum number of bits for the DH GEX prime.")
    gex_preferred_bits: int = Field(default=2048, ge=0, description="The preferred number of bits for the DH GEX prime.")
    hello_only: bool = Field(default=False, description="Limit scan to the initial hello message.")
    connect_timeout: float = Field(default=10.0, ge=0, description="Connect and handshake timeout in seconds (0 disables).")
    ext_info_wait: float = Field(default=2.0, ge=0, description="Seconds to wait for the server's EXT_INFO message.")
    verbose: bool = Field(default=False, description="Record KEXINIT cookies and the client's own KEXINIT.")


__all__ = ["DEFAULT_CLIENT_ID", "SSHFlags"]
