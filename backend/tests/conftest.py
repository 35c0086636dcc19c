"""
Pytest configuration and fixtures for sshprobe backend tests.
"""
import logging

import pytest

from sshprobe.config import get_settings


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Drop cached settings so environment overrides apply per test"""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def debug_logging(caplog):
    """Capture sshprobe log records at DEBUG level"""
    caplog.set_level(logging.DEBUG, logger="sshprobe")
    return caplog
