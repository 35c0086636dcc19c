"""
sshprobe Utility Functions
"""

from sshprobe.utils.logging_security import (  # noqa: F401
    sanitize_banner_for_log,
    sanitize_error_message_for_log,
    sanitize_for_log,
    sanitize_target_for_log,
)
