"""
Connection tracking for graceful shutdown.

``server.close()`` only stops the listener; keep-alive connections can hold a
closing server open indefinitely. A ``LifecycleManager`` records every live
connection so they can be destroyed once a grace period has passed.
"""

import logging
import threading

from . import timers
from .browser import open_url

logger = logging.getLogger(__name__)

DESTROY_GRACE_PERIOD = 5.0  # seconds


class ConnectionTable:
    def __init__(self):
        self._lock = threading.Lock()
        self._connections = {}

    def add(self, connection) -> str:
        key = f"{connection.remote_address}:{connection.remote_port}"
        with self._lock:
            self._connections[key] = connection
        return key

    def remove(self, key: str):
        with self._lock:
            return self._connections.pop(key, None)

    def keys(self):
        with self._lock:
            return list(self._connections)

    def __len__(self):
        with self._lock:
            return len(self._connections)

    def __contains__(self, key):
        with self._lock:
            return key in self._connections

    def destroy_all(self) -> int:
        with self._lock:
            items = list(self._connections.items())
        for key, connection in items:
            logger.debug("Destroying connection %s...", key)
            connection.destroy()
        return len(items)


class LifecycleManager:
    def __init__(self, server):
        self.server = server
        self.connections = ConnectionTable()
        self._opened = False
        self._timer = None
        server.on_connection(self._on_connection)
        server.on_close(self._on_close)

    def _on_connection(self, connection):
        key = self.connections.add(connection)
        logger.debug("Received a socket connection: %s.", key)

        def on_close():
            logger.debug("Socket connection closed: %s.", key)
            self.connections.remove(key)

        connection.on_close(on_close)

    def _on_close(self):
        logger.debug("Server closed.")

    def destroy_connections(self) -> int:
        logger.debug("Destroying all connections...")
        return self.connections.destroy_all()

    def schedule_destroy(self, delay=None):
        if delay is None:
            delay = DESTROY_GRACE_PERIOD
        self._timer = timers.set_timeout(delay, self.destroy_connections)
        return self._timer

    def url(self) -> str:
        addr = self.server.address()
        host = f"[{addr.address}]" if ":" in addr.address else addr.address
        return f"http://{host}:{addr.port}"

    def open_browser(self):
        if self._opened:
            return
        self._opened = True
        open_url(self.url())
