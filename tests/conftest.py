"""Pytest configuration and shared fixtures."""

import json
import socket

import pytest

from logstash_metrics import Registry, Reporter


class UDPServer:
    """Local UDP listener standing in for a Logstash udp input."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.settimeout(2)

    @property
    def address(self):
        host, port = self.sock.getsockname()
        return f"{host}:{port}"

    def read_raw(self):
        data, _ = self.sock.recvfrom(65535)
        return data

    def read(self):
        return json.loads(self.read_raw().decode("utf-8"))

    def close(self):
        self.sock.close()


@pytest.fixture
def udp_server():
    """Start a UDP listener on an ephemeral port."""
    server = UDPServer()
    yield server
    server.close()


@pytest.fixture
def registry():
    """Create an empty registry."""
    return Registry()


@pytest.fixture
def reporter(registry, udp_server):
    """Create a reporter without default fields pointed at the UDP listener."""
    reporter = Reporter(registry, udp_server.address)
    yield reporter
    reporter.close()
