"""Peer identity of a TLS endpoint.

The peer certificate is fetched *without* chain verification: with a
self-signed controller the known_hosts check is the verification.
"""

from __future__ import annotations

import hashlib
import socket
import ssl

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import dsa, ec, ed448, ed25519, rsa

from rexray.core.domain.models import PendingIdentity


def _key_algorithm(cert: x509.Certificate) -> str:
    key = cert.public_key()
    if isinstance(key, rsa.RSAPublicKey):
        return "RSA"
    if isinstance(key, ec.EllipticCurvePublicKey):
        return "EC"
    if isinstance(key, ed25519.Ed25519PublicKey):
        return "ED25519"
    if isinstance(key, ed448.Ed448PublicKey):
        return "ED448"
    if isinstance(key, dsa.DSAPublicKey):
        return "DSA"
    return "UNKNOWN"


def identity_from_certificate(host_name: str, der: bytes) -> PendingIdentity:
    """SHA-256 fingerprint of a DER certificate plus its key algorithm."""

    cert = x509.load_der_x509_certificate(der)
    return PendingIdentity(
        host_name=host_name,
        algorithm=_key_algorithm(cert),
        fingerprint=hashlib.sha256(der).digest(),
    )


def fetch_peer_certificate(host: str, port: int, *, timeout: float = 30.0) -> bytes:
    """Return the DER certificate presented by ``host:port``."""

    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    with socket.create_connection((host, port), timeout=timeout) as sock:
        with context.wrap_socket(sock, server_hostname=host) as tls:
            der = tls.getpeercert(binary_form=True)
    if not der:
        raise ssl.SSLError(f"{host}:{port} presented no certificate")
    return der


def probe_peer_identity(host: str, port: int, *, timeout: float = 30.0) -> PendingIdentity:
    return identity_from_certificate(host, fetch_peer_certificate(host, port, timeout=timeout))
