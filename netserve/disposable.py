"""
Disposable HTTP server.

Serves a single HTML page (``/`` or ``/index.html``) and, optionally, a
script at ``/bundle.js``, then shuts itself down:

1. Once the qualifying response has been sent (the script when one is
   configured, the page otherwise) the server stops accepting connections and
   answers 503 to anything still arriving on open connections.
2. After a grace period any connection still open is destroyed, which lets
   the server finish closing.

A qualifying response that fails to send (the client went away) does not
count: the server keeps serving until one is delivered.

    from netserve.disposable import disposable_server

    def on_ready(error, server):
        print(server.address())

    disposable_server({"html": "<h1>Beep</h1>", "open": True}, on_ready)
"""

import enum
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import check_callable, validate
from .factory import create_factory
from .handlers import byte_length
from .lifecycle import LifecycleManager
from .timers import next_tick

logger = logging.getLogger(__name__)

DEFAULT_ADDRESS = "0.0.0.0"
BOILERPLATE     = Path(__file__).resolve().parent / "static" / "index.html"
HTML_PATHS      = ("/", "/index.html")
BUNDLE_PATH     = "/bundle.js"


class DisposableState(enum.Enum):
    SERVING = "serving"
    FINISHING = "finishing"
    CLOSED = "closed"


def _to_bytes(content) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


@dataclass(frozen=True)
class DisposablePayload:
    html: bytes
    javascript: Optional[bytes] = None

    @classmethod
    def create(cls, html=None, javascript=None, directory=None) -> "DisposablePayload":
        if directory is not None:
            directory = Path(directory)
            if not html and (directory / "index.html").is_file():
                logger.debug("Loading HTML from %s", directory)
                html = (directory / "index.html").read_bytes()
            if not javascript and (directory / "bundle.js").is_file():
                logger.debug("Loading JavaScript from %s", directory)
                javascript = (directory / "bundle.js").read_bytes()
        if not html:
            logger.debug("No HTML content provided.")
            logger.debug("Loading a boilerplate HTML page...")
            html = BOILERPLATE.read_bytes()
        return cls(_to_bytes(html), _to_bytes(javascript) if javascript else None)


class DisposableApp:
    """Routing and the serve-once shutdown sequence for one server."""

    def __init__(self, payload: DisposablePayload):
        self.payload = payload
        self.state = DisposableState.SERVING
        self.server = None
        self.manager = None
        self._lock = threading.Lock()

    def attach(self, server):
        self.server = server
        # Track connections so that lingering keep-alive sockets can be destroyed on close.
        self.manager = LifecycleManager(server)
        server.on_close(self._on_close)

    @property
    def closing(self) -> bool:
        with self._lock:
            return self.state is not DisposableState.SERVING

    # ─── Routing ─────────────────────────────────────────────────────────────
    def handle_request(self, request, response):
        logger.debug("Received a request for %s", request.url)
        if self.closing:
            return self._unavailable(response)
        if request.path == BUNDLE_PATH and self.payload.javascript is not None:
            response.on_finish(self._on_finish)
            next_tick(self._send, response, self.payload.javascript, "text/javascript")
            return
        if request.path not in HTML_PATHS:
            return self._not_found(response)
        if self.payload.javascript is None:
            response.on_finish(self._on_finish)
        # Deferred send; kept from the Node v0.10 race workaround (nodejs/node#1309), likely removable.
        next_tick(self._send, response, self.payload.html, "text/html")

    def _send(self, response, content: bytes, content_type: str):
        logger.debug("Sending %s...", content_type)
        response.status_code = 200
        response.set_header("Content-Type", content_type)
        response.set_header("Content-Length", byte_length(content))
        try:
            response.end(content)
        except OSError as e:
            logger.debug("Client went away before the response was sent: %s", e)

    def _not_found(self, response):
        logger.debug("Sending 404 response...")
        response.status_code = 404
        response.end()

    def _unavailable(self, response):
        logger.debug("Sending 503 response...")
        response.status_code = 503
        response.end()

    # ─── Shutdown ────────────────────────────────────────────────────────────
    def _on_finish(self):
        with self._lock:
            if self.state is not DisposableState.SERVING:
                return
            self.state = DisposableState.FINISHING
        logger.debug("Finished serving content.")
        logger.debug("Closing the server...")
        self.server.close()
        self.manager.schedule_destroy()

    def _on_close(self):
        with self._lock:
            self.state = DisposableState.CLOSED


def disposable_server(options=None, callback=None):
    """
    Create a disposable HTTP server and return it once it is listening.

    Options: ``html``, ``javascript`` (text or bytes), ``dir`` (directory
    holding ``index.html``/``bundle.js``), ``port``, ``maxport``,
    ``hostname``, ``address`` (default ``0.0.0.0``) and ``open``.
    ``callback(None, server)`` runs once the server is listening. Bind
    failures raise instead.
    """
    if callback is not None:
        check_callable(callback, "Callback argument")
    config, extra = validate(options, DEFAULT_ADDRESS)

    logger.debug("Serving provided content.")
    payload = DisposablePayload.create(extra.get("html"), extra.get("javascript"), extra.get("dir"))
    app = DisposableApp(payload)
    bind = create_factory(config, app.handle_request, prepare=app.attach, label="Disposable HTTP")

    def on_server(error, server):
        if error:
            raise error
        logger.debug("Server started.")
        server.app = app
        if extra.get("open"):
            app.manager.open_browser()
        if callback is not None:
            callback(None, server)

    logger.debug("Starting server...")
    return bind(on_server)
