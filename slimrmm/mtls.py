"""Mutual TLS configuration and certificate file handling."""

from __future__ import annotations

import base64
import binascii
import logging
import os
import re
import ssl
import sys
from dataclasses import dataclass
from datetime import timezone

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

CERT_FILE_MODE = 0o644
KEY_FILE_MODE = 0o600

_logger = logging.getLogger(__name__)

_PEM_BLOCK = re.compile(
    rb"-----BEGIN ([A-Z0-9 ]+)-----\s*(.*?)\s*-----END \1-----",
    re.DOTALL,
)


class MTLSError(Exception):
    """Base error for TLS configuration and certificate handling."""


class CANotFoundError(MTLSError):
    def __init__(self, message: str = "CA certificate not found"):
        super().__init__(message)


class InvalidCertError(MTLSError):
    def __init__(self, message: str = "invalid certificate"):
        super().__init__(message)


class CertLoadError(MTLSError):
    def __init__(self, message: str = "failed to load certificate"):
        super().__init__(message)


@dataclass(frozen=True)
class CertPaths:
    """Locations of the CA certificate, client certificate and client key."""

    ca_cert: str = ""
    client_cert: str = ""
    client_key: str = ""


@dataclass(frozen=True)
class TLSOptions:
    """TLS options. insecure_skip_verify is accepted but always ignored."""

    insecure_skip_verify: bool = False
    server_name: str = ""


@dataclass(frozen=True)
class TLSConfig:
    """A client SSL context together with the server name to verify."""

    context: ssl.SSLContext
    server_name: str = ""


def _load_ca_cert(context: ssl.SSLContext, ca_path: str) -> None:
    try:
        with open(ca_path, "rb") as handle:
            data = handle.read()
    except FileNotFoundError as exc:
        raise CANotFoundError() from exc
    except OSError as exc:
        raise MTLSError(f"reading CA cert: {exc}") from exc

    try:
        certificates = x509.load_pem_x509_certificates(data)
    except ValueError as exc:
        raise InvalidCertError("invalid certificate: failed to parse CA certificate") from exc

    pem = "".join(cert.public_bytes(Encoding.PEM).decode("ascii") for cert in certificates)
    context.load_verify_locations(cadata=pem)


def new_tls_config(cert_paths: CertPaths | None = None, options: TLSOptions | None = None) -> TLSConfig:
    """Build a TLS 1.3 client configuration, with client certificates when given.

    Certificate verification is always enabled. A CA certificate that cannot be
    loaded is logged and the system roots are used instead.
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_3
    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED

    server_name = options.server_name if options is not None else ""

    ca_loaded = False
    if cert_paths is not None and cert_paths.ca_cert:
        try:
            _load_ca_cert(context, cert_paths.ca_cert)
            ca_loaded = True
        except MTLSError as exc:
            _logger.warning("could not load CA cert: %s", exc)
    if not ca_loaded:
        context.load_default_certs(ssl.Purpose.SERVER_AUTH)

    if cert_paths is not None and cert_paths.client_cert and cert_paths.client_key:
        try:
            context.load_cert_chain(cert_paths.client_cert, cert_paths.client_key)
        except (OSError, ssl.SSLError) as exc:
            raise CertLoadError(f"failed to load certificate: {exc}") from exc

    return TLSConfig(context=context, server_name=server_name)


def _write_file(path: str, content: bytes, mode: int) -> None:
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
    except OSError as exc:
        raise MTLSError(f"writing {path}: {exc}") from exc

    try:
        os.chmod(path, mode)
    except OSError as exc:
        raise MTLSError(f"setting permissions on {path}: {exc}") from exc


def save_certificates(paths: CertPaths, ca_cert: bytes, client_cert: bytes, client_key: bytes) -> None:
    """Write the non-empty certificate contents to their paths with proper permissions."""
    for path, content, mode in (
        (paths.ca_cert, ca_cert, CERT_FILE_MODE),
        (paths.client_cert, client_cert, CERT_FILE_MODE),
        (paths.client_key, client_key, KEY_FILE_MODE),
    ):
        if content:
            _write_file(path, content, mode)


def certificates_exist(paths: CertPaths) -> bool:
    """Return True if the CA certificate, client certificate and key all exist."""
    for path in (paths.ca_cert, paths.client_cert, paths.client_key):
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        except OSError:
            continue
    return True


def _not_after(cert: x509.Certificate):
    if sys.version_info >= (3, 0) and hasattr(cert, "not_valid_after_utc"):
        return cert.not_valid_after_utc
    return cert.not_valid_after.replace(tzinfo=timezone.utc)


def get_cert_expiry(cert_path: str) -> str:
    """Return the expiry of the first PEM certificate in a file as 'YYYY-MM-DD HH:MM:SS' (UTC)."""
    try:
        with open(cert_path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise MTLSError(f"reading certificate: {exc}") from exc

    match = _PEM_BLOCK.search(data)
    if match is None:
        raise MTLSError("failed to parse certificate PEM")
    try:
        der = base64.b64decode(b"".join(match.group(2).split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise MTLSError("failed to parse certificate PEM") from exc

    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as exc:
        raise MTLSError(f"parsing certificate: {exc}") from exc

    return _not_after(cert).astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")