"""
sshprobe Configuration
Environment driven defaults for the probe CLI
"""

from functools import lru_cache

from pydantic import Field, validator
from pydantic_settings import BaseSettings

from .services.ssh.flags import DEFAULT_CLIENT_ID


class Settings(BaseSettings):
    """Probe settings, overridable with SSHPROBE_* environment variables"""

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Scanning
    default_port: int = Field(default=22, description="Port used for targets given without one")
    senders: int = Field(default=10, description="Number of targets probed concurrently")
    connect_timeout: float = Field(default=10.0, description="Per-target deadline in seconds (0 disables)")

    # SSH protocol
    client_id: str = Field(default=DEFAULT_CLIENT_ID, description="Identification string sent to servers")
    ext_info_wait: float = Field(default=2.0, description="Seconds to wait for the server's EXT_INFO message")
    userauth_username: str = Field(default="root", description="User name sent in the 'none' userauth request")

    @validator("senders")
    def senders_must_be_positive(cls, v):
        if v < 1:
            raise ValueError("Sender count must be at least 1")
        return v

    @validator("connect_timeout", "ext_info_wait")
    def timeouts_must_not_be_negative(cls, v):
        if v < 0:
            raise ValueError("Timeouts must not be negative")
        return v

    @validator("default_port")
    def port_must_be_valid(cls, v):
        if not 0 < v < 65536:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @validator("log_level")
    def log_level_must_be_known(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    class Config:
        env_file = ".env"
        env_prefix = "SSHPROBE_"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached probe settings"""
    return Settings()
