"""
Server handles built on ``http.server.ThreadingHTTPServer``.

The handle exposes the small event surface the lifecycle code needs:

- ``on_connection(listener)``: called with a ``Connection`` for every accepted
  transport connection, before its handler thread starts.
- ``on_close(listener)``: called once, after ``close()`` has stopped the
  listener and every tracked connection has closed.
"""

import logging
import os
import socket
import threading
from collections import namedtuple
from http.server import ThreadingHTTPServer

from .handlers import RequestHandler, RequestListener
from .tls import create_context

logger = logging.getLogger(__name__)

IS_WINDOWS = (os.name == "nt")

HANDSHAKE_TIMEOUT = 120.0

ServerAddress = namedtuple("ServerAddress", ["address", "port", "family"])


class Connection:
    def __init__(self, sock, client_address):
        self.socket = sock
        self.remote_address, self.remote_port = client_address[:2]
        self.active_response = None
        self._close_listeners = []
        self._closed = False

    @property
    def key(self) -> str:
        return f"{self.remote_address}:{self.remote_port}"

    @property
    def closed(self) -> bool:
        return self._closed

    def on_close(self, listener):
        self._close_listeners.append(listener)

    def destroy(self):
        response = self.active_response
        if response is not None:
            response.abort()
        try:
            self.socket.shutdown(socket.SHUT_RDWR)
        except OSError as e:
            logger.debug("Connection %s already gone: %s", self.key, e)

    def _emit_close(self):
        if self._closed:
            return
        self._closed = True
        for listener in self._close_listeners:
            listener()

    def __repr__(self):
        return f"<Connection {self.key}>"


class HTTPServer(ThreadingHTTPServer):
    # SO_REUSEADDR on Windows lets a second listener steal a busy port.
    allow_reuse_address = not IS_WINDOWS
    daemon_threads = True

    def __init__(self, server_address, request_listener=None, **options):
        if ":" in server_address[0]:
            self.address_family = socket.AF_INET6
        if request_listener is not None and not isinstance(request_listener, RequestListener):
            request_listener = RequestListener(request_listener)
        self.request_listener = request_listener
        self.connection_timeout = options.pop("timeout", None)
        self.server_version = options.pop("server_version", None)
        if "request_queue_size" in options:
            self.request_queue_size = options.pop("request_queue_size")
        self._configure(options)
        for name in options:
            logger.debug("Ignoring unsupported server option: %s", name)

        self._lock = threading.Lock()
        self._live = {}
        self._connection_listeners = []
        self._close_listeners = []
        self._serve_thread = None
        self._closing = False
        self._listener_closed = False
        self._close_emitted = False
        self._closed = threading.Event()
        super().__init__(server_address, RequestHandler, bind_and_activate=False)

    def _configure(self, options):
        """Hook for subclasses to consume their own pass-through options."""

    # ─── Lifecycle ───────────────────────────────────────────────────────────
    def listen(self):
        self.server_bind()
        self.server_activate()

    def start(self):
        self._serve_thread = threading.Thread(
            target=self.serve_forever, kwargs={"poll_interval": 0.1},
            name=f"netserve-{self.server_address[1]}", daemon=True)
        self._serve_thread.start()

    def address(self) -> ServerAddress:
        host, port = self.socket.getsockname()[:2]
        return ServerAddress(host, port, self.address_family.name)

    def close(self, callback=None):
        with self._lock:
            pending = not self._close_emitted
            if callback is not None and pending:
                self._close_listeners.append(callback)
            start = not self._closing
            self._closing = True
        if callback is not None and not pending:
            callback()
        if start:
            # Off-thread so a close requested from a handler never deadlocks serve_forever().
            threading.Thread(target=self._shutdown, daemon=True).start()

    def _shutdown(self):
        if self._serve_thread is not None:
            self.shutdown()
        self.server_close()
        logger.debug("Stopped listening on %s:%s.", *self.server_address[:2])
        with self._lock:
            self._listener_closed = True
        self._maybe_emit_close()

    def _maybe_emit_close(self):
        with self._lock:
            if not self._listener_closed or self._live or self._close_emitted:
                return
            self._close_emitted = True
            listeners = list(self._close_listeners)
        try:
            for listener in listeners:
                listener()
        finally:
            self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def wait_closed(self, timeout=None) -> bool:
        return self._closed.wait(timeout)

    # ─── Events ──────────────────────────────────────────────────────────────
    def on_connection(self, listener):
        self._connection_listeners.append(listener)

    def on_close(self, listener):
        with self._lock:
            self._close_listeners.append(listener)

    def connection_for(self, sock):
        with self._lock:
            return self._live.get(sock)

    # ─── socketserver hooks ──────────────────────────────────────────────────
    def process_request(self, request, client_address):
        connection = Connection(request, client_address)
        with self._lock:
            self._live[request] = connection
        for listener in self._connection_listeners:
            listener(connection)
        super().process_request(request, client_address)

    def shutdown_request(self, request):
        super().shutdown_request(request)
        with self._lock:
            connection = self._live.pop(request, None)
        if connection is not None:
            connection._emit_close()
        self._maybe_emit_close()

    def handle_error(self, request, client_address):
        logger.exception("Error while handling request from %s:%s", *client_address[:2])


class SecureHTTPServer(HTTPServer):
    def _configure(self, options):
        self.handshake_timeout = options.pop(
            "handshake_timeout", self.connection_timeout or HANDSHAKE_TIMEOUT)
        self.context = create_context(
            pfx=options.pop("pfx", None),
            cert=options.pop("cert", None),
            key=options.pop("key", None),
            passphrase=options.pop("passphrase", None),
            ciphers=options.pop("ciphers", None),
        )

    def listen(self):
        super().listen()
        # The handshake runs on the connection thread, never inside accept().
        self.socket = self.context.wrap_socket(
            self.socket, server_side=True, do_handshake_on_connect=False)

    def finish_request(self, request, client_address):
        request.settimeout(self.handshake_timeout)
        try:
            request.do_handshake()
        except OSError as e:
            logger.debug("TLS handshake with %s:%s failed: %s", *client_address[:2], e)
            return
        request.settimeout(None)
        super().finish_request(request, client_address)
