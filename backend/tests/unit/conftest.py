"""
Unit test fixtures and helpers.

Provides lightweight fixtures for unit testing that do NOT require
network access or a running SSH server.
"""

import socket

import pytest


@pytest.fixture
def socket_pair():
    """
    Provide a connected (client, server) socket pair.

    Both ends are closed after the test.
    """
    client, server = socket.socketpair()
    yield client, server
    for sock in (client, server):
        sock.close()
