"""
SSH Probe Unit Tests

Unit test suite for the SSH handshake probe components.

Test Modules:
    test_algorithms.py:
        - Catalog contents and default preference orderings
        - Preference string validation (order, duplicates, empty tokens)

    test_probe_config.py:
        - Flags to ProbeConfig assembly and rejection of bad preferences
        - DH group exchange bound checks

    test_kexinit.py:
        - KEXINIT decoding with paramiko.Message
        - Algorithm agreement, AEAD MAC handling, pseudo-algorithm filtering

    test_handshake.py:
        - Version exchange over a socket pair (hello-only)
        - Key exchange, extension and userauth phases against a fake transport
        - Deadline expiry and cancellation

    test_scanner.py:
        - Per-target orchestration, classification and cleanup

    test_models.py, test_policies.py, test_status.py, test_dialer.py:
        - Log serialization, host key fingerprints, status table, dialing

Test Architecture:
    Tests drive the code through socket pairs and a FakeTransport that
    stands in for paramiko.Transport. Tests against a real paramiko SSH
    server on loopback live in tests/integration.

Usage:
    # Run all SSH unit tests
    pytest backend/tests/unit/ssh/ -v
"""
