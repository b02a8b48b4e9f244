"""
Unit Test Configuration
=======================
Fixtures for pure logic tests - NO I/O ALLOWED.

Unit tests run entirely against the virtual drivers and must never reach
the network.
"""

import socket

import pytest


@pytest.fixture(autouse=True)
def isolate_unit_tests(monkeypatch):
    """
    Automatically disable network I/O for unit tests.
    Any test that accidentally opens a connection will fail.
    """
    def block_network(*args, **kwargs):
        raise RuntimeError(
            "Network I/O detected in unit test! "
            "Unit tests must run against the virtual drivers only."
        )

    monkeypatch.setattr(socket.socket, "connect", block_network)
    monkeypatch.setattr(socket, "create_connection", block_network)
