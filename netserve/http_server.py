"""
Plain HTTP server factory.

    from netserve.http_server import factory

    def on_request(request, response):
        response.end("OK")

    def done(error, server):
        print(server.address())

    bind = factory({"port": 7331, "maxport": 7400}, on_request)
    bind(done)
"""

from .config import ConfigurationError, validate
from .factory import create_factory
from .transport import HTTPServer

DEFAULT_ADDRESS = "0.0.0.0"


def factory(options=None, request_listener=None):
    """
    Return a function which creates an HTTP server.

    ``options`` may be omitted and the request listener passed alone. Keys
    other than ``port``, ``maxport``, ``hostname`` and ``address`` are handed
    to the server as-is.
    """
    if callable(options) and request_listener is None:
        options, request_listener = None, options
    elif request_listener is not None and not callable(request_listener):
        raise ConfigurationError(
            f"invalid argument. Request listener must be callable. Value: `{request_listener!r}`.")
    config, server_options = validate(options, DEFAULT_ADDRESS)
    return create_factory(config, request_listener, server_class=HTTPServer,
                          server_options=server_options, label="HTTP")
