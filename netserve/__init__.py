"""HTTP server factories with port hunting and graceful, disposable shutdown."""

from .config import ConfigurationError, ServerConfig
from .disposable import disposable_server
from .http_server import factory as http_server_factory
from .secure_server import factory as secure_server_factory

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "ServerConfig",
    "disposable_server",
    "http_server_factory",
    "secure_server_factory",
]
