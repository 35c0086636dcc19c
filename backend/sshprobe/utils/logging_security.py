"""
Security Logging Utilities for sshprobe
Prevents log injection (CWE-117) from remote-controlled text such as SSH
banners, disconnect messages and target names read from input files.
"""

import ipaddress
import re
from typing import Any, Optional

# Patterns for detecting potentially malicious content
LOG_INJECTION_PATTERNS = [
    r"[\r\n]",  # CRLF injection
    r"%0[ad]",  # URL-encoded CRLF
    r"\\[rn]",  # Escaped newlines
    r"\x00",  # Null bytes
    r"[\x01-\x08\x0b\x0c\x0e-\x1f\x7f]",  # Control characters
]

# Pattern for safe characters in logs
SAFE_LOG_PATTERN = re.compile(r"^[a-zA-Z0-9._@\-\s]+$")


def sanitize_for_log(value: Optional[Any], max_length: int = 100, allow_special: bool = False) -> str:
    """
    Sanitize any value for safe logging.

    Args:
        value: Value to sanitize
        max_length: Maximum length of output
        allow_special: Whether to allow some special characters

    Returns:
        str: Sanitized string safe for logging
    """
    if value is None:
        return "null"

    str_value = str(value)

    if len(str_value) > max_length:
        str_value = str_value[:max_length] + "..."

    for pattern in LOG_INJECTION_PATTERNS:
        str_value = re.sub(pattern, "", str_value)

    if not allow_special and not SAFE_LOG_PATTERN.match(str_value):
        # Keep only alphanumeric, dots, underscores, @, hyphens, spaces
        str_value = re.sub(r"[^a-zA-Z0-9._@\-\s]", "", str_value)

    if not str_value.strip():
        return "[sanitized]"

    return str_value.strip()


def sanitize_banner_for_log(banner: Optional[str]) -> str:
    """
    Sanitize a server identification string for logging.

    Banners are chosen by the remote server; control characters are removed
    but punctuation common in software versions is kept.
    """
    if not banner:
        return "[no_banner]"
    return sanitize_for_log(banner, max_length=255, allow_special=True)


def sanitize_target_for_log(host: Optional[str]) -> str:
    """
    Sanitize a target host for logging.

    Args:
        host: IP address or host name

    Returns:
        str: The address unchanged when it parses as an IP, otherwise a
        sanitized host name
    """
    if not host:
        return "[no_host]"

    try:
        return str(ipaddress.ip_address(host))
    except ValueError:
        return sanitize_for_log(host, max_length=253)


def sanitize_error_message_for_log(error_msg: Optional[Any]) -> str:
    """
    Sanitize an error message for logging.

    Error messages may embed text sent by the remote peer (disconnect
    reasons, malformed banners).
    """
    if not error_msg:
        return "[no_error_message]"
    return sanitize_for_log(str(error_msg), max_length=500, allow_special=True)


__all__ = [
    "sanitize_for_log",
    "sanitize_banner_for_log",
    "sanitize_target_for_log",
    "sanitize_error_message_for_log",
]
