"""
Request listener dispatch and the request/response objects handed to it.

A request listener may take zero, one or two positional parameters:

    def on_request(): ...
    def on_request(request): ...
    def on_request(request, response): ...

The form is picked once, when the listener is wrapped. Listeners that do not
take a ``response`` get an empty 200 after they return; two-parameter
listeners own the response and must call ``response.end()``, possibly later
and from another thread.
"""

import enum
import inspect
import logging
import threading
from http.server import BaseHTTPRequestHandler
from urllib.parse import urlsplit

from .config import check_callable

logger = logging.getLogger(__name__)


class HandlerKind(enum.Enum):
    NONE = 0
    REQUEST = 1
    REQUEST_RESPONSE = 2


def byte_length(content) -> int:
    if isinstance(content, str):
        return len(content.encode("utf-8"))
    return len(content)


def classify(listener) -> HandlerKind:
    try:
        signature = inspect.signature(listener)
    except (TypeError, ValueError):
        return HandlerKind.REQUEST_RESPONSE
    count = 0
    for param in signature.parameters.values():
        if param.kind is inspect.Parameter.VAR_POSITIONAL:
            return HandlerKind.REQUEST_RESPONSE
        if param.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            count += 1
    if count == 0:
        return HandlerKind.NONE
    if count == 1:
        return HandlerKind.REQUEST
    return HandlerKind.REQUEST_RESPONSE


class RequestListener:
    def __init__(self, listener):
        self.listener = check_callable(listener, "Request listener")
        self.kind = classify(listener)

    @property
    def owns_response(self) -> bool:
        return self.kind is HandlerKind.REQUEST_RESPONSE

    def __call__(self, request, response):
        if self.kind is HandlerKind.NONE:
            return self.listener()
        if self.kind is HandlerKind.REQUEST:
            return self.listener(request)
        return self.listener(request, response)

    def __repr__(self):
        return f"RequestListener({self.listener!r}, kind={self.kind.name})"


# ─── Request / Response ──────────────────────────────────────────────────────
class Request:
    def __init__(self, handler: BaseHTTPRequestHandler):
        self._handler = handler
        self.method = handler.command
        self.url = handler.path
        parts = urlsplit(handler.path)
        self.path = parts.path
        self.query = parts.query
        self.headers = handler.headers
        self.remote_address, self.remote_port = handler.client_address[:2]
        self._remaining = int(self.headers.get("Content-Length") or 0)

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size < 0 or size > self._remaining:
            size = self._remaining
        data = self._handler.rfile.read(size)
        self._remaining -= len(data)
        return data

    def discard(self):
        while self._remaining > 0:
            if not self.read(65536):
                break


class Response:
    """Buffered response; nothing reaches the socket until ``end()``."""

    def __init__(self, handler: BaseHTTPRequestHandler):
        self._handler = handler
        self.status_code = 200
        self._headers = {}
        self._chunks = []
        self._finish_listeners = []
        self._lock = threading.Lock()
        self._ended = False
        self._done = threading.Event()

    @property
    def finished(self) -> bool:
        return self._done.is_set()

    def set_header(self, name: str, value):
        self._headers[name.lower()] = (name, str(value))

    def get_header(self, name: str):
        entry = self._headers.get(name.lower())
        return entry[1] if entry else None

    def remove_header(self, name: str):
        self._headers.pop(name.lower(), None)

    def on_finish(self, listener):
        self._finish_listeners.append(listener)

    def write(self, data):
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._chunks.append(bytes(data))

    def end(self, data=None):
        with self._lock:
            if self._ended:
                return
            self._ended = True
        if data is not None:
            self.write(data)
        body = b"".join(self._chunks)
        handler = self._handler
        try:
            handler.send_response(self.status_code)
            if "content-length" not in self._headers:
                self.set_header("Content-Length", byte_length(body))
            for name, value in self._headers.values():
                handler.send_header(name, value)
            handler.end_headers()
            if handler.command != "HEAD":
                handler.wfile.write(body)
            handler.wfile.flush()
        except OSError:
            handler.close_connection = True
            self._done.set()
            raise
        try:
            for listener in self._finish_listeners:
                listener()
        finally:
            self._done.set()

    def abort(self):
        self._handler.close_connection = True
        self._done.set()

    def wait(self, timeout=None) -> bool:
        return self._done.wait(timeout)


# ─── HTTP handler ────────────────────────────────────────────────────────────
class RequestHandler(BaseHTTPRequestHandler):
    protocol_version = "HTTP/1.1"

    def setup(self):
        self.timeout = self.server.connection_timeout
        if self.server.server_version:
            self.server_version = self.server.server_version
        super().setup()

    def _dispatch(self):
        request = Request(self)
        response = Response(self)
        connection = self.server.connection_for(self.connection)
        if connection is not None:
            connection.active_response = response
        try:
            listener = self.server.request_listener
            if listener is None:
                response.status_code = 404
                response.end()
            elif listener.owns_response:
                listener(request, response)
                response.wait()
            else:
                listener(request, response)
                response.end()
        finally:
            if connection is not None:
                connection.active_response = None
        if self.close_connection:
            return
        if self.headers.get("Transfer-Encoding"):
            # Chunked bodies are not decoded here; drop the connection instead.
            self.close_connection = True
        else:
            request.discard()

    do_GET = do_HEAD = do_POST = do_PUT = do_PATCH = do_DELETE = do_OPTIONS = _dispatch

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)
