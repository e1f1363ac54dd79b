import errno
import socket
import threading

import pytest

from netserve import http_server_factory
from netserve.config import ConfigurationError
from helpers import request


def _bind(servers, options=None, listener=None):
    calls = []
    server = http_server_factory(options, listener)(lambda error, srv: calls.append((error, srv)))
    servers.append(server)
    assert calls == [(None, server)]
    return server


def test_returns_a_bind_function():
    assert callable(http_server_factory())
    assert callable(http_server_factory({"port": 0}))
    assert callable(http_server_factory(lambda request, response: None))


def test_invalid_options_fail_before_binding():
    with pytest.raises(ConfigurationError):
        http_server_factory({"port": 3.14})
    with pytest.raises(ConfigurationError):
        http_server_factory({"maxport": 3.14}, lambda request, response: None)


@pytest.mark.parametrize("value", ["5", 5, True, [], {}])
def test_request_listener_must_be_callable(value):
    with pytest.raises(ConfigurationError):
        http_server_factory({"port": 0}, value)


@pytest.mark.parametrize("value", ["5", 5, True, None, [], {}])
def test_bind_requires_callable_callback(value):
    with pytest.raises(ConfigurationError):
        http_server_factory({"port": 0})(value)


def test_ephemeral_port(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"})
    addr = server.address()
    assert addr.port > 0
    assert addr.address == "127.0.0.1"


def test_default_address_is_wildcard(servers):
    server = _bind(servers, {"port": 0})
    assert server.address().address == "0.0.0.0"


def test_listens_on_the_requested_port(servers):
    probe = socket.socket()
    probe.bind(("127.0.0.1", 0))
    port = probe.getsockname()[1]
    probe.close()
    server = _bind(servers, {"port": port, "address": "127.0.0.1"})
    assert server.address().port == port


def test_hunts_past_an_occupied_port(servers, occupied_port):
    server = _bind(servers, {"port": occupied_port, "maxport": occupied_port + 100, "address": "127.0.0.1"})
    assert occupied_port < server.address().port <= occupied_port + 100


def test_occupied_port_without_range_raises(occupied_port):
    calls = []
    bind = http_server_factory({"port": occupied_port, "address": "127.0.0.1"})
    with pytest.raises(OSError) as info:
        bind(lambda error, srv: calls.append(srv))
    assert info.value.errno == errno.EADDRINUSE
    assert calls == []


def test_request_response_listener(servers):
    def on_request(request, response):
        response.set_header("Content-Type", "text/plain")
        response.end("OK " + request.path)

    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, on_request)
    status, headers, body, conn = request(server.address().port, "/beep/boop?x=1")
    conn.close()
    assert status == 200
    assert headers["Content-Type"] == "text/plain"
    assert body == b"OK /beep/boop"


def test_response_may_end_on_another_thread(servers):
    def on_request(request, response):
        threading.Timer(0.05, response.end, ("later",)).start()

    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, on_request)
    status, _, body, conn = request(server.address().port)
    conn.close()
    assert (status, body) == (200, b"later")


def test_request_only_listener_gets_empty_200(servers):
    seen = []
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, lambda request: seen.append(request.url))
    status, headers, body, conn = request(server.address().port, "/ping")
    conn.close()
    assert (status, body, headers["Content-Length"]) == (200, b"", "0")
    assert seen == ["/ping"]


def test_no_argument_listener(servers):
    seen = []
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, lambda: seen.append(True))
    status, _, _, conn = request(server.address().port)
    conn.close()
    assert status == 200
    assert seen == [True]


def test_no_listener_answers_404(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"})
    status, _, body, conn = request(server.address().port)
    conn.close()
    assert (status, body) == (404, b"")


def test_content_length_is_byte_length(servers):
    text = "<p>snow ☃ and café</p>"
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"},
                   lambda request, response: response.end(text))
    _, headers, body, conn = request(server.address().port)
    conn.close()
    assert int(headers["Content-Length"]) == len(text.encode("utf-8")) != len(text)
    assert body.decode("utf-8") == text


def test_keep_alive_serves_several_requests(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"},
                   lambda request, response: response.end(request.path))
    port = server.address().port
    _, _, first, conn = request(port, "/a")
    _, _, second, _ = request(port, "/b", conn=conn)
    conn.close()
    assert (first, second) == (b"/a", b"/b")


def test_connection_events_and_close(servers):
    opened, closed_conns, closed = [], [], threading.Event()
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, lambda request, response: response.end("x"))

    def on_connection(connection):
        opened.append(connection.key)
        connection.on_close(lambda: closed_conns.append(connection.key))

    server.on_connection(on_connection)
    _, _, _, conn = request(server.address().port)
    conn.close()
    server.close(closed.set)
    assert closed.wait(5)
    assert server.wait_closed(5)
    assert len(opened) == 1
    assert closed_conns == opened
    assert opened[0].startswith("127.0.0.1:")


def test_close_waits_for_open_connections(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, lambda request, response: response.end("x"))
    _, _, _, conn = request(server.address().port)
    server.close()
    assert not server.wait_closed(0.5)
    conn.close()
    assert server.wait_closed(5)


def test_passthrough_options_reach_the_server(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1", "server_version": "netserve-test",
                             "timeout": 30, "request_queue_size": 8},
                   lambda request, response: response.end("x"))
    assert server.connection_timeout == 30
    assert server.request_queue_size == 8
    _, headers, _, conn = request(server.address().port)
    conn.close()
    assert headers["Server"].startswith("netserve-test")


def test_close_callback_registered_while_closing_still_runs(servers):
    server = _bind(servers, {"port": 0, "address": "127.0.0.1"}, lambda request, response: response.end("x"))
    late = []
    server.on_close(lambda: server.close(lambda: late.append("late")))
    server.close()
    assert server.wait_closed(5)
    assert late == ["late"]
    server.close(lambda: late.append("after"))
    assert late == ["late", "after"]
