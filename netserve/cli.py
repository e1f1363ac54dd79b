"""
Command line entry point: serve a page once, then exit.

    netserve [dir] [--port N] [--maxport N] [--hostname H] [--address A] [--open]

``dir`` holds ``index.html`` and, optionally, ``bundle.js``. Without it a
boilerplate page is served. ``PORT``, ``MAXPORT``, ``HOSTNAME`` and
``ADDRESS`` provide defaults for the matching flags.
"""

import argparse
import logging
import os
import signal
import socket
import sys

from . import __version__
from .config import ConfigurationError, env_int, env_str
from .disposable import disposable_server

_active_server = None


# ─── CLI ─────────────────────────────────────────────────────────────────────
def build_parser():
    p = argparse.ArgumentParser(prog="netserve", description="Serve an HTML page (and bundle.js) once, then exit.")
    p.add_argument("dir", nargs="?", help="Directory containing index.html and bundle.js.")
    p.add_argument("--port", type=int, default=env_int("PORT", 0), help="Server port (default 0, env PORT).")
    p.add_argument("--maxport", type=int, default=env_int("MAXPORT", None), help="Max server port (env MAXPORT).")
    p.add_argument("--hostname", default=env_str("HOSTNAME", None), help="Server hostname (env HOSTNAME).")
    p.add_argument("--address", default=env_str("ADDRESS", "0.0.0.0"), help="Server address (env ADDRESS).")
    p.add_argument("--open", action="store_true", help="Open the page in the default web browser.")
    p.add_argument("--verbose", "-v", action="store_true", help="Log debug output.")
    p.add_argument("--version", "-V", action="version", version=f"%(prog)s {__version__}")
    return p

def parse_args(argv=None):
    try:
        return build_parser().parse_args(argv)
    except ValueError as e:
        raise SystemExit(f"Invalid environment value: {e}")

def options_from_args(args) -> dict:
    opts = {"port": args.port, "address": args.address, "open": args.open}
    if args.maxport is not None:
        opts["maxport"] = args.maxport
    if args.hostname:
        opts["hostname"] = args.hostname
    if args.dir:
        if not os.path.isdir(args.dir):
            raise SystemExit(f"Serve path does not exist: {args.dir}")
        opts["dir"] = args.dir
    return opts


# ─── Net helpers ─────────────────────────────────────────────────────────────
def get_lan_ip():
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("192.0.2.1", 80))  # No packets sent; chooses interface
        return s.getsockname()[0]
    except OSError:
        return None
    finally:
        s.close()

def print_banner(server):
    addr = server.address()
    lines = [f"  Local : http://{addr.address}:{addr.port}"]
    if addr.address in ("0.0.0.0", "::"):
        lines = [f"  Local : http://127.0.0.1:{addr.port}"]
        lan = get_lan_ip()
        lines.append(f"  LAN   : http://{lan}:{addr.port}" if lan else "  LAN   : <none>")
    w = max(len(l) for l in lines) + 4
    print("\n╔" + "═"*w + "╗")
    for l in lines: print("║" + l.ljust(w) + "║")
    print("╚" + "═"*w + "╝\n")


# ─── Signals / Cleanup ───────────────────────────────────────────────────────
def _cleanup():
    global _active_server
    server = _active_server
    _active_server = None
    if server is not None:
        server.close()

def _signal_handler(signum, frame):
    _cleanup()
    sys.exit(0)

def install_signal_handlers():
    signal.signal(signal.SIGINT,  _signal_handler)
    if hasattr(signal, "SIGTERM"): signal.signal(signal.SIGTERM, _signal_handler)


# ─── Main ────────────────────────────────────────────────────────────────────
def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s")
    opts = options_from_args(args)

    install_signal_handlers()
    try:
        server = disposable_server(opts)
    except ConfigurationError as e:
        raise SystemExit(str(e))
    except OSError as e:
        raise SystemExit(f"Unable to start server: {e}")

    global _active_server
    _active_server = server
    if args.port and server.address().port != args.port:
        print(f"⚠ Port {args.port} unavailable; selected free port {server.address().port}")
    print_banner(server)

    try:
        while not server.wait_closed(0.5):
            pass
    except KeyboardInterrupt:
        _cleanup()
    return 0


if __name__ == "__main__":
    sys.exit(main())
