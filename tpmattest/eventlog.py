"""Filtering of TCG UEFI event logs down to the selected PCRs and hash banks.

The firmware writes the event log with digests for every PCR bank enabled in
the BIOS. A filter keeps only events whose PCR index is selected and, for
crypto-agile (TCG 2.0) logs, only the digests of the selected hash algorithms.
The log header is always kept because the verifier needs it.
"""

from __future__ import annotations

import struct
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from .constants import SPEC_ID_EVENT03, STARTUP_LOCALITY
from .errors import EventLogError
from .pcr import HashAlgorithm, PcrSelection

_MAX_PCR_INDEX = 23
_MAX_DIGEST_COUNT = 4
_MAX_EVENT_SIZE = 1024 * 32
_EV_NO_ACTION = 3
_SHA1_DIGEST_SIZE = 20

# Smallest event size in the header event.
MIN_HEADER_EVENT_SIZE = min(len(STARTUP_LOCALITY), len(SPEC_ID_EVENT03))

# Largest header event: TCG_EfiSpecIDEvent with at most four algorithm entries.
MAX_HEADER_EVENT_SIZE = 16 + 4 + 1 + 1 + 1 + 1 + 4 + (4 * 4) + 1 + 0xFF

_ALG_ID_TO_HASH = {
    0x4: HashAlgorithm.SHA1,
    0xB: HashAlgorithm.SHA256,
    0xC: HashAlgorithm.SHA384,
    0xD: HashAlgorithm.SHA512,
}
_HASH_TO_ALG_ID = {alg: alg_id for alg_id, alg in _ALG_ID_TO_HASH.items()}


def alg_id_to_hash(alg_id: int) -> HashAlgorithm:
    """Return the hash algorithm for a TPM_ALG_ID."""
    try:
        return _ALG_ID_TO_HASH[alg_id]
    except KeyError:
        raise EventLogError(f"Invalid algorithm ID {alg_id}") from None


def hash_to_alg_id(hash_alg: HashAlgorithm) -> int:
    """Return the TPM_ALG_ID for a hash algorithm."""
    try:
        return _HASH_TO_ALG_ID[hash_alg]
    except (KeyError, TypeError):
        raise EventLogError(f"Invalid hash algorithm {hash_alg}") from None


def _take(buf: bytes, pos: int, size: int) -> bytes:
    if pos < 0 or pos + size > len(buf):
        raise EventLogError(
            f"Event log truncated: needed {size} bytes at offset {pos}"
        )
    return buf[pos : pos + size]


def _u32(buf: bytes, pos: int) -> int:
    return struct.unpack("<I", _take(buf, pos, 4))[0]


def _i32(buf: bytes, pos: int) -> int:
    return struct.unpack("<i", _take(buf, pos, 4))[0]


def _i16(buf: bytes, pos: int) -> int:
    return struct.unpack("<h", _take(buf, pos, 2))[0]


def _read_pcr_index(buf: bytes, pos: int) -> int:
    pcr = _i32(buf, pos)
    if not 0 <= pcr <= _MAX_PCR_INDEX:
        raise EventLogError(
            f"Event log contained invalid PCR index {pcr} at offset {pos}"
        )
    return pcr


@dataclass
class EventLogFilter(ABC):
    """Filters an event log whose header ends at ``start``."""

    start: int
    evl_buffer: bytes
    pcr_filter_lookup: dict[int, list[HashAlgorithm]] = field(default_factory=dict)

    @abstractmethod
    def filter_event_logs(self) -> bytes:
        """Return the header followed by the selected events."""


@dataclass
class Tcg20EventLogFilter(EventLogFilter):
    """Filter for crypto-agile (TCG_PCR_EVENT2) logs with several digests per event."""

    def filter_event_logs(self) -> bytes:
        buf = self.evl_buffer
        results = bytearray(buf[: self.start])
        pos = self.start

        while pos < len(buf):
            pcr = _read_pcr_index(buf, pos)
            pos += 4

            event_type = _u32(buf, pos)
            pos += 4

            digest_count = _i32(buf, pos)
            if not 0 <= digest_count <= _MAX_DIGEST_COUNT:
                raise EventLogError(
                    f"Event log contained invalid digest count {digest_count} "
                    f"at offset {pos}"
                )
            pos += 4

            digest_offsets: dict[HashAlgorithm, int] = {}
            for _ in range(digest_count):
                hash_alg = alg_id_to_hash(_i16(buf, pos))
                pos += 2
                digest_offsets[hash_alg] = pos
                pos += hash_alg.size()

            event_size = _i32(buf, pos)
            if not 0 <= event_size <= _MAX_EVENT_SIZE:
                raise EventLogError(
                    f"Event log contained invalid event size {event_size} "
                    f"at offset {pos}"
                )
            pos += 4

            event_start = pos
            pos += event_size

            selected = self.pcr_filter_lookup.get(pcr)
            if selected is None:
                continue

            matching = [alg for alg in selected if alg in digest_offsets]
            if not matching:
                continue

            results += struct.pack("<III", pcr, event_type, len(matching))
            for hash_alg in matching:
                offset = digest_offsets[hash_alg]
                results += struct.pack("<H", hash_to_alg_id(hash_alg))
                results += _take(buf, offset, hash_alg.size())
            results += struct.pack("<I", event_size)
            results += _take(buf, event_start, event_size)

        return bytes(results)


@dataclass
class Tcg12EventLogFilter(EventLogFilter):
    """Filter for SHA-1 (TCG_PCClientPCREvent) logs with one fixed digest per event."""

    def filter_event_logs(self) -> bytes:
        buf = self.evl_buffer
        results = bytearray(buf[: self.start])
        pos = self.start

        while pos < len(buf):
            pcr = _read_pcr_index(buf, pos)
            pos += 4

            event_type = _u32(buf, pos)
            pos += 4

            digest = _take(buf, pos, _SHA1_DIGEST_SIZE)
            pos += _SHA1_DIGEST_SIZE

            event_size = _u32(buf, pos)
            if event_size > _MAX_EVENT_SIZE:
                raise EventLogError(
                    f"Event log contained invalid event size {event_size} "
                    f"at offset {pos}"
                )
            pos += 4

            event = _take(buf, pos, event_size)
            pos += event_size

            selected = self.pcr_filter_lookup.get(pcr)
            if selected is None or HashAlgorithm.SHA1 not in selected:
                continue

            results += struct.pack("<II", pcr, event_type)
            results += digest
            results += struct.pack("<I", event_size)
            results += event

        return bytes(results)


def _build_lookup(selections: tuple[PcrSelection, ...]) -> dict[int, list[HashAlgorithm]]:
    lookup: dict[int, list[HashAlgorithm]] = {}
    for selection in selections:
        for pcr in selection.pcrs:
            lookup.setdefault(pcr, []).append(selection.hash)
    return lookup


def new_event_log_filter(evl_buffer: bytes, *args: PcrSelection) -> EventLogFilter:
    """Inspect the log header and return the matching filter for the selections."""
    buf = bytes(evl_buffer)
    lookup = _build_lookup(args)
    pos = 0

    if _i32(buf, pos) != 0:
        raise EventLogError("The event log header did not start with PCR 0")
    pos += 4

    if _i32(buf, pos) != _EV_NO_ACTION:
        raise EventLogError("The event log header did not have event type 3")
    pos += 4

    pos += _SHA1_DIGEST_SIZE

    event_size = _u32(buf, pos)
    if not MIN_HEADER_EVENT_SIZE <= event_size <= MAX_HEADER_EVENT_SIZE:
        raise EventLogError(
            f"The event log header had an incorrect event size {event_size}"
        )
    pos += 4

    signature = _take(buf, pos, MIN_HEADER_EVENT_SIZE).decode("latin-1")
    pos += event_size

    if signature.startswith(SPEC_ID_EVENT03):
        return Tcg20EventLogFilter(pos, buf, lookup)
    if signature.startswith(STARTUP_LOCALITY):
        return Tcg12EventLogFilter(pos, buf, lookup)
    raise EventLogError(
        f"The event log header did not contain {SPEC_ID_EVENT03!r} "
        f"or {STARTUP_LOCALITY!r}"
    )