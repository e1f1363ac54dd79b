"""
TLS credentials for the secure server.

``ssl.SSLContext.load_cert_chain`` only reads files, so PEM material passed in
memory is staged through a private temporary directory that is removed as
soon as the context has loaded it. PKCS#12 bundles are unpacked with
``cryptography``.
"""

import ipaddress as ipa
import logging
import os
import ssl
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509 import DNSName, IPAddress, NameOID, SubjectAlternativeName

from .config import ConfigurationError

logger = logging.getLogger(__name__)


# ─── Helpers ─────────────────────────────────────────────────────────────────
def _read(value) -> bytes:
    if isinstance(value, os.PathLike):
        return Path(value).read_bytes()
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)

def _stage(value, directory: str, name: str) -> str:
    if isinstance(value, os.PathLike):
        return os.fspath(value)
    path = os.path.join(directory, name)
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(_read(value))
    return path

def _unpack_pfx(data: bytes, passphrase):
    password = passphrase.encode("utf-8") if passphrase else None
    keyobj, cert, extra = pkcs12.load_key_and_certificates(data, password)
    if keyobj is None or cert is None:
        raise ConfigurationError("invalid option. `pfx` option must contain a private key and a certificate.")
    key_pem = keyobj.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption())
    chain = [cert] + list(extra or [])
    cert_pem = b"".join(c.public_bytes(serialization.Encoding.PEM) for c in chain)
    return cert_pem, key_pem


# ─── Contexts ────────────────────────────────────────────────────────────────
def create_context(pfx=None, cert=None, key=None, passphrase=None, ciphers=None) -> ssl.SSLContext:
    if pfx is None and cert is None:
        raise ConfigurationError("invalid options. Must provide either a `pfx` option or `cert` and `key` options.")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    context.set_alpn_protocols(["http/1.1"])
    if ciphers:
        context.set_ciphers(ciphers)

    if pfx is not None:
        logger.debug("Loading PKCS#12 credentials.")
        cert, key = _unpack_pfx(_read(pfx), passphrase)
        passphrase = None

    with tempfile.TemporaryDirectory(prefix="netserve-") as tmp:
        cert_file = _stage(cert, tmp, "cert.pem")
        key_file  = _stage(key, tmp, "key.pem") if key is not None else None
        context.load_cert_chain(certfile=cert_file, keyfile=key_file, password=passphrase)
    return context


def generate_self_signed(hostnames=("localhost",), ip_addresses=("127.0.0.1",), days=365):
    """Return ``(cert_pem, key_pem)`` for a fresh self-signed certificate."""
    keyobj = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    san_list = [DNSName(h) for h in hostnames if h]
    for ip in ip_addresses:
        try: san_list.append(IPAddress(ipa.ip_address(ip)))
        except ValueError: logger.warning("Skipping invalid IP address for SAN: %s", ip)

    cn   = (list(hostnames) + list(ip_addresses) + ["localhost"])[0]
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, cn)])

    not_before = datetime.now(timezone.utc) - timedelta(minutes=5)
    not_after  = not_before + timedelta(days=days)

    cert = (x509.CertificateBuilder()
            .subject_name(name).issuer_name(name)
            .public_key(keyobj.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before).not_valid_after(not_after)
            .add_extension(SubjectAlternativeName(san_list), critical=False)
            .sign(keyobj, hashes.SHA256()))

    key_pem = keyobj.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption())
    return cert.public_bytes(serialization.Encoding.PEM), key_pem
