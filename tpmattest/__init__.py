"""TPM attestation helpers: PCR selections, event log filtering, certificates and evidence."""

__version__ = "0.1.0"

__all__ = [
    "adapter",
    "certificates",
    "constants",
    "device",
    "errors",
    "eventlog",
    "pcr",
]