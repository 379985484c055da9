"""Unit tests for AES-256-GCM field encryption."""

import pytest

from subcircle.core.exceptions import AuthenticationError, FormatError
from subcircle.security.cipher import NONCE_LENGTH, TAG_LENGTH, decrypt, encrypt, generate_nonce
from subcircle.security.kdf import SymmetricKey


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def key():
    """A fixed key; derivation is covered in test_security_kdf."""
    return SymmetricKey(b"\x01" * 32)


@pytest.fixture
def other_key():
    return SymmetricKey(b"\x02" * 32)


# ==============================================================================
# Tests
# ==============================================================================

def test_generate_nonce_length():
    assert len(generate_nonce()) == NONCE_LENGTH


def test_encrypt_decrypt_round_trip(key):
    nonce, ct = encrypt("s3cr3t", key)
    assert len(nonce) == NONCE_LENGTH
    assert len(ct) == len("s3cr3t") + TAG_LENGTH
    assert decrypt(nonce, ct, key) == "s3cr3t"


def test_round_trip_unicode_and_empty(key):
    for text in ["", "pässwörd ✓", "日本語"]:
        nonce, ct = encrypt(text, key)
        assert decrypt(nonce, ct, key) == text


def test_nonce_is_fresh_per_call(key):
    """Encrypting the same plaintext twice gives different nonces and ciphertexts."""
    n1, c1 = encrypt("same", key)
    n2, c2 = encrypt("same", key)
    assert n1 != n2
    assert c1 != c2


def test_decrypt_wrong_key_fails_closed(key, other_key):
    nonce, ct = encrypt("s3cr3t", key)
    with pytest.raises(AuthenticationError):
        decrypt(nonce, ct, other_key)


def test_decrypt_tampered_ciphertext(key):
    nonce, ct = encrypt("s3cr3t", key)
    tampered = bytes([ct[0] ^ 0x01]) + ct[1:]
    with pytest.raises(AuthenticationError):
        decrypt(nonce, tampered, key)


def test_decrypt_tampered_nonce(key):
    nonce, ct = encrypt("s3cr3t", key)
    tampered = bytes([nonce[0] ^ 0x80]) + nonce[1:]
    with pytest.raises(AuthenticationError):
        decrypt(tampered, ct, key)


def test_decrypt_wrong_nonce_length(key):
    _, ct = encrypt("s3cr3t", key)
    with pytest.raises(FormatError):
        decrypt(b"\x00" * 8, ct, key)


def test_decrypt_non_utf8_plaintext_is_format_error(key):
    """A valid tag over bytes that are not UTF-8 is a format problem, not auth."""
    nonce = generate_nonce()
    ct = key.aead.encrypt(nonce, b"\xff\xfe\xfd", None)
    with pytest.raises(FormatError):
        decrypt(nonce, ct, key)
