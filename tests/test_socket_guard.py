from __future__ import annotations

import socket

import pytest

import conftest  # pytest loads tests/conftest.py as top-level module


def test_socket_guard_blocks_exchange_connect() -> None:
    # Creating a socket succeeds; connecting to the exchange must not.
    sock = socket.socket()
    try:
        with pytest.raises(conftest.NetworkAccessError):
            sock.connect(("www.cryptopia.co.nz", 443))
        with pytest.raises(OSError):
            sock.connect_ex(("www.cryptopia.co.nz", 443))
    finally:
        sock.close()


def test_socket_guard_blocks_create_connection() -> None:
    with pytest.raises(conftest.NetworkAccessError):
        socket.create_connection(("www.cryptopia.co.nz", 443))


def test_socket_guard_points_at_client_injection() -> None:
    with pytest.raises(conftest.NetworkAccessError, match="inject a fake client"):
        socket.create_connection(("www.cryptopia.co.nz", 443))
