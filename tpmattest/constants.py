"""Well-known TPM handles, limits and paths."""

MAX_NV_SIZE = 1024 * 8

DEFAULT_EK_NV_INDEX = 0x01C00002
DEFAULT_EK_HANDLE = 0x81000800
DEFAULT_AK_HANDLE = 0x81000801

# Owner NV handle range ("Registry of Reserved TPM 2.0 Handles and Localities" 2.2.2).
MIN_NV_HANDLE = 0x01000000
MAX_NV_HANDLE = 0x01C2FFFF

DEFAULT_IMA_PATH = "/sys/kernel/security/ima/ascii_runtime_measurements"
DEFAULT_UEFI_EVENT_LOG_PATH = "/sys/kernel/security/tpm0/binary_bios_measurements"

SPEC_ID_EVENT03 = "Spec ID Event03"
STARTUP_LOCALITY = "StartupLocality"

# Well-known digest used for the endorsement hierarchy's authorization policy.
DEFAULT_AUTH_POLICY_SHA256 = bytes(
    [
        0x83, 0x71, 0x97, 0x67, 0x44, 0x84, 0xB3, 0xF8, 0x1A, 0x90,
        0xCC, 0x8D, 0x46, 0xA5, 0xD7, 0x24, 0xFD, 0x52, 0xD7, 0x6E,
        0x06, 0x52, 0x0B, 0x64, 0xF2, 0xA1, 0xDA, 0x1B, 0x33, 0x14,
        0x69, 0xAA,
    ]
)