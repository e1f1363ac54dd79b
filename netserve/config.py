"""
Option validation for the server factories.

Every factory validates its options once, up front, before any socket is
opened. Validated options split into two parts:

- a ``ServerConfig`` holding the listen parameters (port, max port, hostname,
  address), and
- a dict of everything else, which callers either consume (``html``, ``open``,
  ...) or forward verbatim to the transport.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

# ─── Constants ───────────────────────────────────────────────────────────────
DEFAULT_PORT     = 0
EXCLUDED_OPTIONS = ("port", "maxport", "hostname", "address")

BYTES_LIKE = (bytes, bytearray, memoryview)


class ConfigurationError(TypeError):
    """Raised for invalid options or arguments, before any I/O happens."""


@dataclass(frozen=True)
class ServerConfig:
    port: int = DEFAULT_PORT
    maxport: int = DEFAULT_PORT
    hostname: Optional[str] = None
    address: str = "0.0.0.0"

    @property
    def host(self) -> str:
        return self.hostname or self.address


# ─── Type checks ─────────────────────────────────────────────────────────────
def _is_nonnegative_int(v) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v >= 0

def _is_text_or_bytes(v) -> bool:
    return isinstance(v, (str,) + BYTES_LIKE)

def _is_pathish(v) -> bool:
    return isinstance(v, (str, os.PathLike))

def _is_credential(v) -> bool:
    return isinstance(v, (str, os.PathLike) + BYTES_LIKE)

_RULES = {
    "port":       (_is_nonnegative_int, "a nonnegative integer"),
    "maxport":    (_is_nonnegative_int, "a nonnegative integer"),
    "hostname":   (lambda v: isinstance(v, str), "a string"),
    "address":    (lambda v: isinstance(v, str), "a string"),
    "open":       (lambda v: isinstance(v, bool), "a boolean"),
    "html":       (_is_text_or_bytes, "a string or bytes"),
    "javascript": (_is_text_or_bytes, "a string or bytes"),
    "dir":        (_is_pathish, "a string or path"),
    "pfx":        (_is_credential, "a string, bytes or path"),
    "cert":       (_is_credential, "a string, bytes or path"),
    "key":        (_is_credential, "a string, bytes or path"),
    "passphrase": (lambda v: isinstance(v, str), "a string"),
}


def check_callable(value, what: str):
    if not callable(value):
        raise ConfigurationError(f"invalid argument. {what} must be callable. Value: `{value!r}`.")
    return value


def validate(options: Optional[Mapping[str, Any]], default_address: str) -> Tuple[ServerConfig, dict]:
    """
    Validate ``options`` and return ``(config, extra_options)``.

    ``maxport`` defaults to ``port``. A ``maxport`` below ``port`` is accepted
    and means a single bind attempt.
    """
    if options is None:
        options = {}
    if not isinstance(options, Mapping):
        raise ConfigurationError(f"invalid argument. Options argument must be a mapping. Value: `{options!r}`.")

    for name, (check, expected) in _RULES.items():
        if name in options and not check(options[name]):
            raise ConfigurationError(
                f"invalid option. `{name}` option must be {expected}. Option: `{options[name]!r}`.")

    port = options.get("port", DEFAULT_PORT)
    maxport = options.get("maxport", port)
    config = ServerConfig(
        port=port,
        maxport=maxport,
        hostname=options.get("hostname") or None,
        address=options.get("address") or default_address,
    )
    logger.debug("Server port: %d", config.port)
    logger.debug("Max server port: %d", config.maxport)
    logger.debug("Server hostname: %s", config.host)
    if config.maxport < config.port:
        # TODO: reject this as a configuration error once callers stop relying on it.
        logger.warning("Max server port %d is below server port %d; port hunting disabled.",
                       config.maxport, config.port)

    extra = {k: v for k, v in options.items() if k not in EXCLUDED_OPTIONS}
    return config, extra


# ─── Environment ─────────────────────────────────────────────────────────────
def env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    return int(value) if value not in (None, "") else default

def env_str(name: str, default: Optional[str]) -> Optional[str]:
    value = os.environ.get(name)
    return value if value else default
