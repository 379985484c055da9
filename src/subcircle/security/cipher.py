"""AES-256-GCM encryption of single credential fields."""

from __future__ import annotations

import os
from typing import Tuple

from cryptography.exceptions import InvalidTag

from ..core.exceptions import AuthenticationError, FormatError
from .kdf import SymmetricKey

NONCE_LENGTH = 12  # 96-bit nonce for GCM
TAG_LENGTH = 16


def generate_nonce() -> bytes:
    """Return a fresh random nonce; never reuse one under the same key."""
    return os.urandom(NONCE_LENGTH)


def encrypt(plaintext: str, key: SymmetricKey) -> Tuple[bytes, bytes]:
    """
    Encrypt ``plaintext`` and return ``(nonce, ciphertext)``.

    ``ciphertext`` carries the 16-byte GCM tag at its end, as produced by
    :meth:`AESGCM.encrypt`. No associated data is bound.
    """
    nonce = generate_nonce()
    ct = key.aead.encrypt(nonce, plaintext.encode("utf-8"), None)
    return nonce, ct


def decrypt(nonce: bytes, ciphertext: bytes, key: SymmetricKey) -> str:
    """
    Verify and decrypt one field.

    Raises:
        FormatError: nonce has the wrong length, or plaintext is not UTF-8.
        AuthenticationError: tag mismatch (wrong key or tampered bytes).
    """
    if len(nonce) != NONCE_LENGTH:
        raise FormatError(f"Nonce must be {NONCE_LENGTH} bytes, got {len(nonce)}")

    try:
        raw = key.aead.decrypt(nonce, ciphertext, None)
    except InvalidTag:
        raise AuthenticationError("Authentication tag mismatch") from None

    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Decrypted field is not valid UTF-8: {e}") from None
