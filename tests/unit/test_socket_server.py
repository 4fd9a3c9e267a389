"""
Unit tests for SocketServer binding.
"""

import dataclasses
import socket

import pytest

from staticserver.core.socket_server import SocketServer


@pytest.fixture
def occupied():
    """A listening socket holding a port, without SO_REUSEADDR."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(("127.0.0.1", 0))
    sock.listen(1)
    yield sock.getsockname()[1]
    sock.close()


def close_listener(server):
    server._close_listener()


class TestBind:
    def test_port_zero_picks_free_port(self, config):
        server = SocketServer(config)

        port = server.bind()
        try:
            assert port > 0
            assert server.port == port
        finally:
            close_listener(server)

    def test_retries_next_port(self, config, occupied):
        server = SocketServer(dataclasses.replace(config, port=occupied, port_retries=20))

        try:
            port = server.bind()
        except OSError:
            pytest.skip("no free port above the occupied one")
        try:
            assert port > occupied
        finally:
            close_listener(server)

    def test_no_retries_fails(self, config, occupied):
        server = SocketServer(dataclasses.replace(config, port=occupied, port_retries=0))

        with pytest.raises(OSError):
            server.bind()

    def test_unresolvable_host(self, config):
        server = SocketServer(dataclasses.replace(config, host="no-such-host.invalid"))

        with pytest.raises(OSError):
            server.bind()

    def test_serve_before_bind(self, config):
        with pytest.raises(RuntimeError):
            SocketServer(config).serve_forever(lambda conn: None)
