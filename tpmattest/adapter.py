"""Evidence adapter that collects TPM quotes, PCR values, logs and AK certificates."""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
import stat
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import SplitResult, urlsplit

from cryptography.hazmat.primitives import serialization

from .certificates import get_ca_issuer_certificate, parse_certificate_bytes
from .constants import DEFAULT_AK_HANDLE, DEFAULT_IMA_PATH, DEFAULT_UEFI_EVENT_LOG_PATH
from .device import TpmDeviceType, TpmFactory, TrustedPlatformModule
from .errors import (
    AkFileReadError,
    AkNvramInvalidHexError,
    AkNvramReadError,
    ImaLogReadError,
    PathTraversalError,
    PcrsFailureError,
    QuoteFailureError,
    TpmError,
    TpmOpenFailureError,
    UefiLogReadError,
)
from .eventlog import new_event_log_filter
from .pcr import PcrSelection, default_pcr_selections, parse_pcr_selections

logger = logging.getLogger(__name__)

_CONTROL_CHAR_RE = re.compile(r"[\x00-\x1f\x7f]")
_HEX_RE = re.compile(r"[+-]?[0-9a-fA-F]+")
_SUPPORTED_AK_SCHEMES = ("file", "nvram")


def _b64(data: bytes) -> str:
    return base64.b64encode(bytes(data)).decode("ascii")


@dataclass(frozen=True)
class VerifierNonce:
    """A nonce issued by the verifier."""

    val: bytes
    iat: bytes
    signature: bytes = b""


@dataclass
class TpmEvidence:
    """TPM evidence: quote, signature, PCRs and optional logs and certificates."""

    quote: bytes
    signature: bytes
    pcrs: bytes
    user_data: Optional[bytes] = None
    ima_logs: Optional[bytes] = None
    uefi_event_logs: Optional[bytes] = None
    verifier_nonce: Optional[VerifierNonce] = None
    ak_certificate_der: Optional[bytes] = None

    def to_dict(self) -> dict:
        """JSON-ready form with base64 byte fields; empty optional fields are omitted."""
        result: dict = {
            "quote": _b64(self.quote),
            "signature": _b64(self.signature),
            "pcrs": _b64(self.pcrs),
        }
        for key, value in (
            ("user_data", self.user_data),
            ("ima_logs", self.ima_logs),
            ("uefi_event_logs", self.uefi_event_logs),
        ):
            if value:
                result[key] = _b64(value)
        if self.verifier_nonce is not None:
            result["verifier_nonce"] = {
                "val": _b64(self.verifier_nonce.val),
                "iat": _b64(self.verifier_nonce.iat),
                "signature": _b64(self.verifier_nonce.signature),
            }
        if self.ak_certificate_der:
            result["ak_certificate_der"] = _b64(self.ak_certificate_der)
        return result


def create_nonce_hash(
    verifier_nonce: Optional[VerifierNonce], user_data: Optional[bytes]
) -> Optional[bytes]:
    """SHA-256 of the nonce value, its issue time and the user data, or None if both are absent."""
    if verifier_nonce is None and not user_data:
        return None

    digest = hashlib.sha256()
    if verifier_nonce is not None:
        digest.update(verifier_nonce.val)
        digest.update(verifier_nonce.iat)
    if user_data:
        digest.update(user_data)
    return digest.digest()


def validate_file_path(file_path: str) -> None:
    """Reject paths with traversal components; raise OSError if the path is missing."""
    path = os.fspath(file_path)
    if ".." in path:
        raise PathTraversalError(path)

    info = os.lstat(path)
    if stat.S_ISLNK(info.st_mode):
        resolved = os.path.realpath(path, strict=True)
        if ".." in resolved:
            raise PathTraversalError(resolved)


def read_file(file_path: str) -> bytes:
    """Validate the path and return the file's contents."""
    validate_file_path(file_path)
    with open(file_path, "rb") as handle:
        return handle.read()


def read_ak_certificate(
    ak_uri: Union[SplitResult, str], tpm: Optional[TrustedPlatformModule]
) -> bytes:
    """Return the AK certificate DER followed by its issuer CA's DER, if any."""
    uri = urlsplit(ak_uri) if isinstance(ak_uri, str) else ak_uri

    ak_bytes = b""
    if uri.scheme == "file":
        try:
            ak_bytes = read_file(uri.path)
        except (OSError, TpmError) as err:
            raise AkFileReadError(
                f"Failed to read AK certificate PEM from file {uri.path}"
            ) from err
    elif uri.scheme == "nvram":
        hex_string = uri.netloc.removeprefix("0x")
        if not _HEX_RE.fullmatch(hex_string):
            raise AkNvramInvalidHexError(f"Failed to parse {hex_string}")
        nv_index = int(hex_string, 16)
        if tpm is None:
            raise AkNvramReadError(
                f"Failed to read AK certificate from NV index 0x{nv_index:x}: no tpm"
            )
        try:
            ak_bytes = tpm.nv_read(nv_index)
        except Exception as err:
            raise AkNvramReadError(
                f"Failed to read AK certificate from NV index 0x{nv_index:x}: {err}"
            ) from err

    ak_cert = parse_certificate_bytes(ak_bytes)
    results = ak_cert.public_bytes(serialization.Encoding.DER)

    ca_cert = get_ca_issuer_certificate(ak_cert)
    if ca_cert is not None:
        results += ca_cert.public_bytes(serialization.Encoding.DER)
    return results


def _parse_ak_certificate_uri(uri_string: str) -> Optional[SplitResult]:
    if uri_string == "":
        logger.warning(
            "The ak_certificate was not defined in configuration and will not "
            "be included in TPM evidence."
        )
        return None

    if _CONTROL_CHAR_RE.search(uri_string):
        raise ValueError(
            f"Failed to parse AK certificate URI {uri_string!r}: invalid control character"
        )
    try:
        uri = urlsplit(uri_string)
    except ValueError as err:
        raise ValueError(f"Failed to parse AK certificate URI {uri_string!r}") from err

    if uri.scheme not in _SUPPORTED_AK_SCHEMES:
        raise ValueError(f"Unsupported URI scheme {uri.scheme}")
    return uri


@dataclass
class TpmAdapter:
    """Collects TPM evidence using a TPM opened from ``tpm_factory``."""

    tpm_factory: Optional[TpmFactory]
    ak_handle: int = DEFAULT_AK_HANDLE
    pcr_selections: list[PcrSelection] = field(default_factory=default_pcr_selections)
    device_type: TpmDeviceType = TpmDeviceType.LINUX
    owner_auth: str = ""
    ima_logs_path: str = ""
    uefi_logs_path: str = ""
    ak_certificate_uri: Optional[SplitResult] = None

    def get_evidence_identifier(self) -> str:
        return "tpm"

    def get_evidence(
        self,
        verifier_nonce: Optional[VerifierNonce] = None,
        user_data: Optional[bytes] = None,
    ) -> TpmEvidence:
        """Open the TPM and gather quote, PCRs, logs and AK certificate."""
        if self.tpm_factory is None:
            raise TpmOpenFailureError("no tpm factory configured")
        try:
            tpm = self.tpm_factory.new(self.device_type, self.owner_auth)
        except Exception as err:
            raise TpmOpenFailureError(str(err)) from err

        with tpm:
            return self._collect(tpm, verifier_nonce, user_data)

    def _collect(
        self,
        tpm: TrustedPlatformModule,
        verifier_nonce: Optional[VerifierNonce],
        user_data: Optional[bytes],
    ) -> TpmEvidence:
        nonce_hash = create_nonce_hash(verifier_nonce, user_data)

        try:
            quote, signature = tpm.get_quote(
                self.ak_handle, nonce_hash, *self.pcr_selections
            )
        except Exception as err:
            raise QuoteFailureError(f"AK handle 0x{self.ak_handle:x}: {err}") from err

        try:
            pcrs = tpm.get_pcrs(*self.pcr_selections)
        except Exception as err:
            raise PcrsFailureError(str(err)) from err

        ima_logs = None
        if self.ima_logs_path:
            try:
                ima_logs = read_file(self.ima_logs_path)
            except (OSError, TpmError) as err:
                raise ImaLogReadError(f"path {self.ima_logs_path!r}") from err

        uefi_event_logs = None
        if self.uefi_logs_path:
            try:
                raw_log = read_file(self.uefi_logs_path)
            except (OSError, TpmError) as err:
                raise UefiLogReadError(f"path {self.uefi_logs_path!r}") from err
            log_filter = new_event_log_filter(raw_log, *self.pcr_selections)
            uefi_event_logs = log_filter.filter_event_logs()

        ak_der = None
        if self.ak_certificate_uri is not None:
            ak_der = read_ak_certificate(self.ak_certificate_uri, tpm)

        return TpmEvidence(
            quote=quote,
            signature=signature,
            pcrs=pcrs,
            user_data=bytes(user_data) if user_data else None,
            ima_logs=ima_logs,
            uefi_event_logs=uefi_event_logs,
            verifier_nonce=verifier_nonce,
            ak_certificate_der=ak_der,
        )


@dataclass
class TpmAdapterFactory:
    """Creates TpmAdapter instances bound to a TPM factory."""

    tpm_factory: Optional[TpmFactory]

    def new(
        self,
        owner_auth: str = "",
        device_type: TpmDeviceType = TpmDeviceType.LINUX,
        ak_handle: int = DEFAULT_AK_HANDLE,
        pcr_selections: str = "",
        ima_logs: bool = False,
        uefi_event_logs: bool = False,
        ak_certificate_uri: str = "",
    ) -> TpmAdapter:
        """Build an adapter; an AK handle of 0 and empty strings select the defaults."""
        return TpmAdapter(
            tpm_factory=self.tpm_factory,
            ak_handle=ak_handle or DEFAULT_AK_HANDLE,
            pcr_selections=parse_pcr_selections(pcr_selections),
            device_type=device_type,
            owner_auth=owner_auth,
            ima_logs_path=DEFAULT_IMA_PATH if ima_logs else "",
            uefi_logs_path=DEFAULT_UEFI_EVENT_LOG_PATH if uefi_event_logs else "",
            ak_certificate_uri=_parse_ak_certificate_uri(ak_certificate_uri),
        )