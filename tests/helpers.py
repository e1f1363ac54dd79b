import errno
import http.client

from netserve.transport import ServerAddress


def request(port, path="/", method="GET", conn=None, host="127.0.0.1"):
    """Issue one request; returns ``(status, headers, body, conn)``."""
    if conn is None:
        conn = http.client.HTTPConnection(host, port, timeout=10)
    conn.request(method, path)
    resp = conn.getresponse()
    body = resp.read()
    return resp.status, resp.headers, body, conn


class FakeServer:
    """Stands in for ``HTTPServer`` in bind tests; ``busy``/``broken`` ports fail to listen."""

    def __init__(self, server_address, request_listener=None, **options):
        self.server_address = server_address
        self.request_listener = request_listener
        self.options = options
        self.closed = False
        self.started = False

    def listen(self):
        port = self.server_address[1]
        self.attempts.append(port)
        self.instances.append(self)
        if port in self.busy:
            raise OSError(errno.EADDRINUSE, "Address already in use")
        if port in self.broken:
            raise OSError(errno.EACCES, "Permission denied")

    def server_close(self):
        self.closed = True

    def start(self):
        self.started = True

    def address(self):
        return ServerAddress(self.server_address[0], self.server_address[1], "AF_INET")


