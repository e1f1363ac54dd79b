import socket

import pytest

from netserve.tls import generate_self_signed
from helpers import FakeServer


@pytest.fixture
def occupied_port():
    """A loopback port with a live listener on it."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    s.listen(1)
    yield s.getsockname()[1]
    s.close()


@pytest.fixture
def servers():
    """Servers appended here are closed after the test."""
    started = []
    yield started
    for server in started:
        server.close()
        server.wait_closed(5)


@pytest.fixture(scope="session")
def tls_material():
    return generate_self_signed(hostnames=("localhost",), ip_addresses=("127.0.0.1",))


@pytest.fixture
def fake_server_class():
    def make(busy=(), broken=()):
        return type("FakeServer", (FakeServer,), {
            "busy": set(busy), "broken": set(broken), "attempts": [], "instances": []})
    return make
