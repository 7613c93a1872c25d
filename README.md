# tpmattest

Helpers for collecting TPM 2.0 attestation evidence on a host.

The package covers the work that happens around the TPM during remote
attestation:

- parsing PCR selection strings in the style of the tpm2-tools
  (`"sha1:1,2,3+sha256:all"`) and turning them into TPM selection lists
  (`tpmattest.pcr`);
- filtering TCG UEFI event logs, both the crypto-agile TCG 2.0 format and
  the SHA-1 TCG 1.2 format, down to the selected PCRs and hash banks
  (`tpmattest.eventlog`);
- parsing AK and EK certificates in PEM or DER form and downloading the
  issuing CA certificate named in the Authority Information Access
  extension (`tpmattest.certificates`);
- assembling the evidence document (quote, signature, PCR values, optional
  IMA and UEFI logs, AK certificate chain) an attestation verifier expects
  (`tpmattest.adapter`);
- decrypting AES-GCM payloads (`tpmattest.pcr.aes_decrypt`).

## Installation

```
pip install tpmattest
```

For development, including the test suite:

```
pip install -e ".[test]"
pytest
```

## PCR selections

```python
from tpmattest.pcr import parse_pcr_selections, to_tpm2_pcr_selection_list

selections = parse_pcr_selections("sha1:1,2,3+sha256:all")
tpm2_list = to_tpm2_pcr_selection_list(selections)
```

`parse_pcr_selections` returns a list of `PcrSelection` (a `HashAlgorithm`
and a tuple of PCR indices). An empty string gives
`default_pcr_selections()`: all 24 SHA-256 PCRs. PCR numbers must be
between 0 and 23 and the hash one of `sha1`, `sha256`, `sha384` or
`sha512`; anything else raises `ValueError`.

`to_tpm2_pcr_selection_list` turns selections into `Tpm2PcrSelection`
values holding the TPM_ALG_ID and the sorted PCR indices; an empty input
gives the default selection.

`aes_decrypt(cipher_text, key)` decrypts data laid out as a 12-byte GCM
nonce followed by the ciphertext and tag.

## Filtering a UEFI event log

```python
from pathlib import Path

from tpmattest.eventlog import new_event_log_filter
from tpmattest.pcr import parse_pcr_selections

raw = Path("/sys/kernel/security/tpm0/binary_bios_measurements").read_bytes()
log_filter = new_event_log_filter(raw, *parse_pcr_selections("sha256:0,1,7"))
filtered = log_filter.filter_event_logs()
```

`new_event_log_filter` reads the log header and returns a
`Tcg20EventLogFilter` (header "Spec ID Event03") or a
`Tcg12EventLogFilter` (header "StartupLocality"). The header is always
kept. An event is kept only when its PCR is selected; in TCG 2.0 logs only
the digests of the selected banks are written out, and in TCG 1.2 logs an
event is kept only when `sha1` is selected for its PCR. A malformed or
truncated log raises `tpmattest.errors.EventLogError`.

## Certificates

- `parse_certificate_bytes(data)` accepts PEM or DER; a PEM block that is
  not `CERTIFICATE` raises `InvalidPemTypeError`, bad data raises
  `InvalidCertificateError`.
- `get_ca_issuer_certificate(cert, get=None)` returns the CA certificate
  named in the caIssuers entry, or `None` when there is none.
- `get_issuer_certificate(url, get=None)` downloads and parses a
  certificate. `get` is an optional callable returning an `HttpResponse`
  (status, body, reason); by default `urllib` is used. Transport failures
  raise `IssuerCaHttpError`, non-200 responses `IssuerCaStatusError`.
- `parse_ek_certificate(data)` parses an EK certificate read from NV RAM,
  using the outer DER length so that trailing padding is ignored;
  `read_ek_certificate(tpm, nv_index)` reads the NV index first
  (`tpmattest.constants.DEFAULT_EK_NV_INDEX` is the usual one).

## Collecting evidence

```python
from tpmattest.adapter import TpmAdapterFactory, VerifierNonce
from tpmattest.device import TpmDeviceType

factory = TpmAdapterFactory(my_tpm_factory)  # a tpmattest.device.TpmFactory
adapter = factory.new(
    device_type=TpmDeviceType.MSSIM,
    pcr_selections="sha256:0,1,7",
    uefi_event_logs=True,
    ak_certificate_uri="nvram://0x01c00003",
)
evidence = adapter.get_evidence(VerifierNonce(val=b"nonce", iat=b"issued-at"), b"user data")
document = evidence.to_dict()
```

`TpmAdapterFactory.new` takes `owner_auth`, `device_type`, `ak_handle` (0
means `DEFAULT_AK_HANDLE`), `pcr_selections`, `ima_logs`,
`uefi_event_logs` and `ak_certificate_uri`. The AK certificate URI may be
empty, a `file://` path or an `nvram://` hex index; any other scheme raises
`ValueError`.

`TpmAdapter.get_evidence` opens the TPM through the factory, takes a quote
over the SHA-256 of the nonce value, its issue time and the user data (no
nonce when both are absent), reads the selected PCRs, optionally reads the
IMA log and the filtered UEFI log from their default paths, and reads the
AK certificate with its issuer CA. It returns a `TpmEvidence`; `to_dict()`
gives a JSON-ready dictionary with base64 byte fields and empty optional
fields left out.

Log and certificate files go through `validate_file_path`, which rejects
paths, or symlink targets, containing `..` with `PathTraversalError`.

## Errors

Failures in TPM access and evidence collection are subclasses of
`tpmattest.errors.TpmError`, for example `TpmOpenFailureError`,
`QuoteFailureError`, `PcrsFailureError`, `ImaLogReadError`,
`AkNvramReadError`, `InvalidCertificateError` and `EventLogError`. Invalid
arguments, such as a bad PCR selection string, an unknown device name or
an unsupported AK certificate URI, raise `ValueError`.

## What the package does not do

The package contains no TPM driver. `tpmattest.device` defines the
`TrustedPlatformModule` and `TpmFactory` interfaces (`nv_read`,
`get_quote`, `get_pcrs`, `close`), but nothing that talks to a Linux TPM
device or a simulator; you supply that implementation. Provisioning
operations such as creating EK or AK keys, defining or writing NV indices
and credential activation are not provided, and there is no command-line
tool.