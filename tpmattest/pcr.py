"""PCR selections: parsing, conversion to TPM form, and AES-GCM helpers."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

PCR_COUNT = 24
_GCM_NONCE_SIZE = 12
_INT_RE = re.compile(r"[+-]?[0-9]+")


class HashAlgorithm(enum.Enum):
    """Hash algorithms usable for PCR banks."""

    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    def size(self) -> int:
        """Digest size in bytes."""
        return _DIGEST_SIZES[self]


_DIGEST_SIZES = {
    HashAlgorithm.SHA1: 20,
    HashAlgorithm.SHA256: 32,
    HashAlgorithm.SHA384: 48,
    HashAlgorithm.SHA512: 64,
}

# TPM_ALG_ID values for each hash algorithm.
_TPM2_ALG_IDS = {
    HashAlgorithm.SHA1: 0x0004,
    HashAlgorithm.SHA256: 0x000B,
    HashAlgorithm.SHA384: 0x000C,
    HashAlgorithm.SHA512: 0x000D,
}


@dataclass(frozen=True)
class PcrSelection:
    """A hash bank and the PCR indices chosen from it."""

    hash: HashAlgorithm
    pcrs: tuple[int, ...] = field(default=())

    def __post_init__(self) -> None:
        object.__setattr__(self, "pcrs", tuple(self.pcrs))


@dataclass(frozen=True)
class Tpm2PcrSelection:
    """A PCR selection in TPM form: a TPM_ALG_ID and sorted PCR indices."""

    hash_alg_id: int
    select: tuple[int, ...]


def default_pcr_selections() -> list[PcrSelection]:
    """All 24 PCRs of the SHA-256 bank."""
    return [PcrSelection(HashAlgorithm.SHA256, tuple(range(PCR_COUNT)))]


def _parse_bank(text: str) -> list[int]:
    if text == "all":
        return list(range(PCR_COUNT))
    if not _INT_RE.fullmatch(text):
        raise ValueError(f"Failed to parse PCR bank {text!r}")
    bank = int(text)
    if not 0 <= bank < PCR_COUNT:
        raise ValueError(f"Bank {bank} out of range")
    return [bank]


def parse_pcr_selections(args: str) -> list[PcrSelection]:
    """Parse a tpm2-tools style selection such as "sha1:1,2,3+sha256:all"."""
    if args == "":
        return default_pcr_selections()

    selections = []
    for selection in args.split("+"):
        parts = selection.split(":")
        if len(parts) != 2:
            raise ValueError("invalid format")
        name, banks = parts
        try:
            hash_alg = HashAlgorithm(name)
        except ValueError:
            raise ValueError(f"Invalid PCR hash {name!r}") from None
        pcrs = [pcr for bank in banks.split(",") for pcr in _parse_bank(bank)]
        selections.append(PcrSelection(hash_alg, tuple(pcrs)))
    return selections


def to_tpm2_pcr_selection_list(
    selections: Iterable[PcrSelection],
) -> list[Tpm2PcrSelection]:
    """Convert selections to TPM form; an empty selection means the default."""
    chosen: Sequence[PcrSelection] = list(selections) or default_pcr_selections()
    result = []
    for selected in chosen:
        alg_id = _TPM2_ALG_IDS.get(selected.hash) if isinstance(
            selected.hash, HashAlgorithm
        ) else None
        if alg_id is None:
            raise ValueError(f"Unsupported hash algorithm: {selected.hash}")
        result.append(Tpm2PcrSelection(alg_id, tuple(sorted(selected.pcrs))))
    return result


def aes_decrypt(cipher_text: bytes, key: bytes) -> bytes:
    """Decrypt AES-GCM data laid out as nonce followed by ciphertext and tag."""
    if not key:
        raise ValueError("invalid parameter. length of key is zero")
    aead = AESGCM(bytes(key))
    if len(cipher_text) < _GCM_NONCE_SIZE:
        raise ValueError("cipher text is shorter than the GCM nonce")
    nonce, body = cipher_text[:_GCM_NONCE_SIZE], cipher_text[_GCM_NONCE_SIZE:]
    return aead.decrypt(bytes(nonce), bytes(body), None)