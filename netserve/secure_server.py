"""
TLS server factory.

Requires either ``pfx`` or a ``cert``/``key`` pair. Any other options beyond
``port``, ``maxport``, ``hostname`` and ``address`` go to ``SecureHTTPServer``
(``passphrase``, ``ciphers``, ``timeout``, ``handshake_timeout``, ...).
"""

from .config import ConfigurationError, validate
from .factory import create_factory
from .transport import SecureHTTPServer

DEFAULT_ADDRESS = "127.0.0.1"


def factory(options=None, request_listener=None):
    if callable(options) and request_listener is None:
        options, request_listener = None, options
    elif request_listener is not None and not callable(request_listener):
        raise ConfigurationError(
            f"invalid argument. Request listener must be callable. Value: `{request_listener!r}`.")
    config, server_options = validate(options, DEFAULT_ADDRESS)
    if "pfx" not in server_options and not ("cert" in server_options and "key" in server_options):
        raise ConfigurationError("invalid options. Must provide either a `pfx` option or `cert` and `key` options.")
    return create_factory(config, request_listener, server_class=SecureHTTPServer,
                          server_options=server_options, label="TLS")
