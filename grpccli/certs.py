"""
grpccli/certs.py
Turns the TLS settings into gRPC channel credentials.

With TLS disabled nothing is read and the channel is plaintext.  With TLS on,
a CA bundle and a client certificate/key pair may each be given (both at
once for mutual TLS); a server name override is passed to the channel as the
ssl_target_name_override option.
"""

from __future__ import annotations

import re
import ssl
from dataclasses import dataclass, field
from pathlib import Path

import grpc

from grpccli.errors import (
    CertLoadError,
    CertPoolAppendError,
    KeyPairLoadError,
    ServerNameOverrideError,
)

_CERT_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----\s.+?\s-----END CERTIFICATE-----", re.DOTALL
)
_HOSTNAME_RE = re.compile(
    r"^(?=.{1,253}$)([A-Za-z0-9_]([A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?)(\.[A-Za-z0-9_]([A-Za-z0-9_-]{0,61}[A-Za-z0-9_])?)*\.?$"
)


@dataclass
class ChannelCredentials:
    """Ready-to-use transport security for one channel."""

    credentials: grpc.ChannelCredentials | None = None
    options: list[tuple[str, str]] = field(default_factory=list)
    has_ca_cert: bool = False
    has_cert: bool = False

    @property
    def secure(self) -> bool:
        return self.credentials is not None


def _context() -> ssl.SSLContext:
    return ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)


def count_certificates(pem: bytes) -> int:
    """Number of X.509 certificates in a PEM bundle that OpenSSL can load."""
    count = 0
    for block in _CERT_RE.findall(pem.decode("ascii", errors="replace")):
        try:
            _context().load_verify_locations(cadata=block)
        except (ssl.SSLError, ValueError):
            continue
        count += 1
    return count


def load_ca_cert(path: str) -> bytes:
    try:
        body = Path(path).read_bytes()
    except OSError as exc:
        raise CertLoadError(f"failed to read CA certificate {path}: {exc}") from exc
    if count_certificates(body) == 0:
        raise CertPoolAppendError(f"failed to append CACert to cert pool: no certificate in {path}")
    return body


def _no_password() -> bytes:
    raise KeyPairLoadError("encrypted private keys are not supported")


def load_key_pair(cert_path: str, key_path: str) -> tuple[bytes, bytes]:
    """Read a client certificate and its private key.

    Both halves are parsed and the key must match the certificate.
    """
    if not cert_path or not key_path:
        raise KeyPairLoadError("the client certificate and its key must be given together")
    try:
        cert = Path(cert_path).read_bytes()
        key = Path(key_path).read_bytes()
    except OSError as exc:
        raise KeyPairLoadError(f"failed to read key pair: {exc}") from exc
    try:
        _context().load_cert_chain(cert_path, key_path, password=_no_password)
    except (OSError, ValueError) as exc:
        raise KeyPairLoadError(f"failed to load key pair {cert_path}, {key_path}: {exc}") from exc
    return cert, key


def build(
    tls: bool,
    ca_cert_path: str = "",
    cert_path: str = "",
    cert_key_path: str = "",
    server_name: str = "",
) -> ChannelCredentials:
    """Load the certificate material and assemble channel credentials."""
    if not tls:
        return ChannelCredentials()

    root_certificates: bytes | None = None
    private_key: bytes | None = None
    certificate_chain: bytes | None = None

    if ca_cert_path:
        root_certificates = load_ca_cert(ca_cert_path)
    if cert_path or cert_key_path:
        certificate_chain, private_key = load_key_pair(cert_path, cert_key_path)

    creds = ChannelCredentials(
        credentials=grpc.ssl_channel_credentials(
            root_certificates=root_certificates,
            private_key=private_key,
            certificate_chain=certificate_chain,
        ),
        has_ca_cert=root_certificates is not None,
        has_cert=certificate_chain is not None,
    )

    if server_name:
        if not _HOSTNAME_RE.match(server_name):
            raise ServerNameOverrideError(f'failed to override server name "{server_name}"')
        creds.options.append(("grpc.ssl_target_name_override", server_name))
    return creds
