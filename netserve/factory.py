"""
Port hunting.

``create_factory`` returns a bind procedure. Each call binds a fresh server,
starting at ``config.port``; while the port is taken and the candidate is
below ``config.maxport`` it moves on to the next port, immediately. Any other
error, or a busy port at the ceiling, propagates to the caller.
"""

import errno
import logging

from .config import ServerConfig, check_callable
from .handlers import RequestListener
from .transport import HTTPServer

logger = logging.getLogger(__name__)

_ADDRESS_IN_USE = {errno.EADDRINUSE}
if hasattr(errno, "WSAEADDRINUSE"):
    _ADDRESS_IN_USE.add(errno.WSAEADDRINUSE)


def is_address_in_use(error: OSError) -> bool:
    return error.errno in _ADDRESS_IN_USE


class BindAttempt:
    """One listen call on one candidate port."""

    def __init__(self, config: ServerConfig, port: int, make_server):
        self.config = config
        self.port = port
        self._make_server = make_server
        self.server = None

    def run(self):
        logger.debug("Attempting to listen on %s:%d.", self.config.host, self.port)
        server = self._make_server((self.config.host, self.port))
        try:
            server.listen()
        except OSError:
            server.server_close()
            raise
        self.server = server
        return server

    def next(self) -> "BindAttempt":
        return BindAttempt(self.config, self.port + 1, self._make_server)


def create_factory(config: ServerConfig, request_listener=None, *, server_class=HTTPServer,
                   server_options=None, prepare=None, label="HTTP"):
    if request_listener is not None:
        request_listener = RequestListener(request_listener)
    server_options = dict(server_options or {})

    def make_server(server_address):
        return server_class(server_address, request_listener, **server_options)

    def bind(done):
        check_callable(done, "Callback argument")
        attempt = BindAttempt(config, config.port, make_server)
        while True:
            try:
                server = attempt.run()
                break
            except OSError as error:
                if is_address_in_use(error):
                    logger.debug("Server address already in use: %s:%d.", config.host, attempt.port)
                    if attempt.port < config.maxport:
                        attempt = attempt.next()
                        continue
                raise

        if prepare is not None:
            prepare(server)
        server.start()
        addr = server.address()
        logger.debug("%s server initialized. Server is listening for requests on %s:%d.",
                     label, addr.address, addr.port)
        done(None, server)
        return server

    return bind
