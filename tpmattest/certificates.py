"""X.509 certificate parsing and retrieval of issuer CA certificates."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Callable, Optional

from cryptography import x509
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID

from .device import TrustedPlatformModule
from .errors import (
    InvalidCertificateError,
    InvalidPemTypeError,
    IssuerCaHttpError,
    IssuerCaStatusError,
)

logger = logging.getLogger(__name__)

_HTTP_OK = 200
_HTTP_TIMEOUT = 30

_PEM_RE = re.compile(
    rb"-----BEGIN ([^\r\n]*?)-----\r?\n(.*?)-----END \1-----", re.DOTALL
)


@dataclass(frozen=True)
class HttpResponse:
    """The parts of an HTTP response needed to download a certificate."""

    status: int
    body: bytes = b""
    reason: str = ""


Getter = Callable[[str], HttpResponse]


def _http_get(url: str) -> HttpResponse:
    try:
        with urllib.request.urlopen(url, timeout=_HTTP_TIMEOUT) as resp:
            return HttpResponse(resp.status, resp.read(), resp.reason or "")
    except urllib.error.HTTPError as err:
        return HttpResponse(err.code, b"", str(err.reason))


def _decode_pem(data: bytes) -> Optional[tuple[str, bytes]]:
    match = _PEM_RE.search(data)
    if match is None:
        return None
    lines = [
        line.strip()
        for line in match.group(2).splitlines()
        if line.strip() and b":" not in line
    ]
    try:
        der = base64.b64decode(b"".join(lines), validate=True)
    except (binascii.Error, ValueError):
        return None
    return match.group(1).decode("latin-1"), der


def parse_certificate_bytes(cert_bytes: bytes) -> x509.Certificate:
    """Parse a certificate given in PEM or DER form."""
    data = bytes(cert_bytes or b"")
    block = _decode_pem(data)
    if block is not None:
        block_type, der = block
        if block_type != "CERTIFICATE":
            raise InvalidPemTypeError(f"got {block_type!r}")
    else:
        der = data

    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as err:
        raise InvalidCertificateError(f"failed to parse certificate: {err}") from err


def get_issuer_certificate(issuer_url: str, get: Optional[Getter] = None) -> x509.Certificate:
    """Download and parse the certificate published at ``issuer_url``."""
    fetch = get or _http_get
    try:
        resp = fetch(issuer_url)
    except Exception as err:
        raise IssuerCaHttpError(
            f"failed to fetch certificate from {issuer_url}: {err}"
        ) from err

    if resp.status != _HTTP_OK:
        status = f"{resp.status} {resp.reason}".strip()
        raise IssuerCaStatusError(
            f"downloading cert {issuer_url} return error status: {status}"
        )

    try:
        ca = parse_certificate_bytes(resp.body)
    except InvalidCertificateError as err:
        raise InvalidCertificateError(f"failed to parse CA certificate: {err}") from err

    logger.debug("Successfully downloaded intermediate CA certificate from %s", issuer_url)
    return ca


def get_ca_issuer_certificate(
    ak_cert: x509.Certificate, get: Optional[Getter] = None
) -> Optional[x509.Certificate]:
    """Fetch the CA named in the certificate's caIssuers entry, or return None."""
    try:
        ext = ak_cert.extensions.get_extension_for_oid(
            ExtensionOID.AUTHORITY_INFORMATION_ACCESS
        )
    except x509.ExtensionNotFound:
        ext = None
    except ValueError as err:
        raise InvalidCertificateError(f"malformed certificate extensions: {err}") from err

    issuer_url = ""
    if ext is not None:
        issuer_url = next(
            (
                desc.access_location.value
                for desc in ext.value
                if desc.access_method == AuthorityInformationAccessOID.CA_ISSUERS
                and isinstance(desc.access_location, x509.UniformResourceIdentifier)
            ),
            "",
        )

    if not issuer_url:
        logger.debug("AK certificate did not contain an issuer URL")
        return None

    return get_issuer_certificate(issuer_url, get)


def parse_ek_certificate(ek_der: bytes) -> x509.Certificate:
    """Parse an EK certificate read from NV RAM, ignoring trailing padding.

    The certificate length is taken from the outer DER header.
    """
    data = bytes(ek_der)
    if len(data) < 2:
        raise InvalidCertificateError("certificate data is too short")

    length_byte = data[1]
    if length_byte & 0x80:
        num_bytes = length_byte & 0x7F
        length_bytes = data[2 : 2 + num_bytes]
        if len(length_bytes) < num_bytes:
            raise InvalidCertificateError("certificate length is truncated")
        length = int.from_bytes(length_bytes, "big")
    else:
        length = length_byte

    try:
        return x509.load_der_x509_certificate(data[: length + 4])
    except ValueError as err:
        raise InvalidCertificateError(f"failed to parse certificate: {err}") from err


def read_ek_certificate(tpm: TrustedPlatformModule, nv_index: int) -> x509.Certificate:
    """Read NV RAM at ``nv_index`` and parse it as an EK certificate."""
    ek_der = tpm.nv_read(nv_index)
    if not ek_der:
        raise InvalidCertificateError(
            f"nvram at handle 0x{nv_index:x} only contained 0 bytes"
        )
    return parse_ek_certificate(ek_der)