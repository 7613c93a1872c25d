"""TPM device types and the abstract interface to a TPM."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod

from .pcr import PcrSelection


class TpmDeviceType(enum.Enum):
    """Kind of TPM device to open."""

    UNKNOWN = 0
    LINUX = 1
    MSSIM = 2

    def __str__(self) -> str:
        return self.name.lower()


def parse_tpm_device_type(s: str) -> TpmDeviceType:
    """Return the device type named "linux" or "mssim"."""
    if s == "linux":
        return TpmDeviceType.LINUX
    if s == "mssim":
        return TpmDeviceType.MSSIM
    raise ValueError(f"Unknown TPM device type: {s}")


class TrustedPlatformModule(ABC):
    """The TPM operations needed to collect attestation evidence.

    Instances are context managers that close the device on exit.
    """

    @abstractmethod
    def nv_read(self, nv_handle: int) -> bytes:
        """Read the bytes stored at an NV index."""

    @abstractmethod
    def get_quote(
        self, ak_handle: int, nonce: bytes | None, *args: PcrSelection
    ) -> tuple[bytes, bytes]:
        """Return the marshalled quote and signature made with the AK."""

    @abstractmethod
    def get_pcrs(self, *args: PcrSelection) -> bytes:
        """Return the selected PCR digests concatenated in index order."""

    @abstractmethod
    def close(self) -> None:
        """Release the device."""

    def __enter__(self) -> TrustedPlatformModule:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class TpmFactory(ABC):
    """Creates TrustedPlatformModule instances."""

    @abstractmethod
    def new(self, device_type: TpmDeviceType, owner_auth: str) -> TrustedPlatformModule:
        """Open a TPM of the given type with the given owner password."""