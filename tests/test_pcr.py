import pytest
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from tpmattest.pcr import (
    HashAlgorithm,
    PcrSelection,
    Tpm2PcrSelection,
    aes_decrypt,
    default_pcr_selections,
    parse_pcr_selections,
    to_tpm2_pcr_selection_list,
)

ALL = tuple(range(24))

VALID_SELECTIONS = {
    "": [PcrSelection(HashAlgorithm.SHA256, ALL)],
    "sha1:all": [PcrSelection(HashAlgorithm.SHA1, ALL)],
    "sha1:1,2,3": [PcrSelection(HashAlgorithm.SHA1, (1, 2, 3))],
    "sha1:1,2,3+sha256:1,2,3": [
        PcrSelection(HashAlgorithm.SHA1, (1, 2, 3)),
        PcrSelection(HashAlgorithm.SHA256, (1, 2, 3)),
    ],
    "sha1:all+sha256:1,2,3": [
        PcrSelection(HashAlgorithm.SHA1, ALL),
        PcrSelection(HashAlgorithm.SHA256, (1, 2, 3)),
    ],
    "sha384:1,2,3": [PcrSelection(HashAlgorithm.SHA384, (1, 2, 3))],
    "sha512:1,2,3": [PcrSelection(HashAlgorithm.SHA512, (1, 2, 3))],
}


@pytest.mark.parametrize("arg,expected", list(VALID_SELECTIONS.items()))
def test_parse_pcr_selections(arg, expected):
    assert parse_pcr_selections(arg) == expected


@pytest.mark.parametrize("arg", ["sha1:400", "sha43:1,2,3", "sha1:x,2,3", "xxxx"])
def test_parse_pcr_selections_invalid(arg):
    with pytest.raises(ValueError):
        parse_pcr_selections(arg)


def test_default_selection_is_sha256_all():
    assert default_pcr_selections() == [PcrSelection(HashAlgorithm.SHA256, ALL)]


def test_hash_sizes():
    assert HashAlgorithm.SHA1.size() == 20
    assert HashAlgorithm.SHA256.size() == 32
    assert HashAlgorithm.SHA384.size() == 48
    assert HashAlgorithm.SHA512.size() == 64


@pytest.mark.parametrize(
    "selections,expected",
    [
        ([], [Tpm2PcrSelection(0x000B, ALL)]),
        ([PcrSelection(HashAlgorithm.SHA1, [0, 1, 2, 3])], [Tpm2PcrSelection(0x0004, (0, 1, 2, 3))]),
        ([PcrSelection(HashAlgorithm.SHA384, [0, 1, 2, 3])], [Tpm2PcrSelection(0x000C, (0, 1, 2, 3))]),
        ([PcrSelection(HashAlgorithm.SHA512, [0, 1, 2, 3])], [Tpm2PcrSelection(0x000D, (0, 1, 2, 3))]),
    ],
)
def test_to_tpm2_selection_list(selections, expected):
    assert to_tpm2_pcr_selection_list(selections) == expected


def test_to_tpm2_selection_list_sorts_pcrs():
    result = to_tpm2_pcr_selection_list([PcrSelection(HashAlgorithm.SHA256, [3, 1, 2])])
    assert result[0].select == (1, 2, 3)


def test_to_tpm2_selection_list_unsupported_algorithm():
    with pytest.raises(ValueError):
        to_tpm2_pcr_selection_list([PcrSelection("md5sha1", [0, 1, 2, 3])])


def test_aes_decrypt_round_trip():
    key = bytes(range(16))
    nonce = bytes(12)
    sealed = nonce + AESGCM(key).encrypt(nonce, b"decafbad", None)
    assert aes_decrypt(sealed, key) == b"decafbad"


def test_aes_decrypt_empty_key():
    with pytest.raises(ValueError):
        aes_decrypt(bytes(40), b"")


def test_aes_decrypt_tampered():
    key = bytes(range(32))
    nonce = bytes(12)
    sealed = bytearray(nonce + AESGCM(key).encrypt(nonce, b"payload", None))
    sealed[-1] ^= 0x01
    with pytest.raises(InvalidTag):
        aes_decrypt(bytes(sealed), key)


def test_aes_decrypt_short_input():
    with pytest.raises(ValueError):
        aes_decrypt(b"short", bytes(16))