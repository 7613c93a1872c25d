"""Exception hierarchy for TPM operations and evidence collection."""

from __future__ import annotations


class TpmError(Exception):
    """Base class for every error raised by this package."""

    message = "tpm error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if not detail else f"{self.message}: {detail}"
        super().__init__(text)


class HandleOutOfRangeError(TpmError):
    message = "handle out of range"


class InvalidHandleError(TpmError):
    message = "invalid handle"


class ExistingHandleError(TpmError):
    message = "the handle already exists"


class HandleDoesNotExistError(TpmError):
    message = "the handle does not exist"


class HandleAccessError(TpmError):
    message = "failed to access handle"


class NvIndexDoesNotExistError(TpmError):
    message = "nv index does not exist"


class NvReleaseFailedError(TpmError):
    message = "failed to release/delete nv index"


class NvDefineSpaceFailedError(TpmError):
    message = "failed to define/create nv index"


class NvWriteFailedError(TpmError):
    message = "failed to write data to nv ram"


class NvInvalidSizeError(TpmError):
    message = "invalid data size for nv ram"


class SymlinksNotAllowedError(TpmError):
    message = "symlinks are not allowed"


class PathTraversalError(TpmError):
    message = "path traversal detected"


class QuoteFailureError(TpmError):
    message = "failed to get quote"


class TpmOpenFailureError(TpmError):
    message = "failed to create tpm device"


class PcrsFailureError(TpmError):
    message = "failed to read pcrs"


class ImaLogReadError(TpmError):
    message = "failed to read ima log"


class UefiLogReadError(TpmError):
    message = "failed to read uefi log"


class AkFileReadError(TpmError):
    message = "failed to read ak certificate from file"


class AkNvramInvalidHexError(TpmError):
    message = "invalid ak hex value"


class AkNvramReadError(TpmError):
    message = "failed to read ak certificate from nvram"


class IssuerCaHttpError(TpmError):
    message = "failed download issuer CA certificate"


class IssuerCaStatusError(TpmError):
    message = "failed download issuer CA certificate"


class InvalidCertificateError(TpmError):
    message = "invalid certificate"


class InvalidPemTypeError(TpmError):
    message = "invalid pem type, expected CERTIFICATE"


class EventLogError(TpmError):
    message = "invalid event log"