"""
Text encoding for encrypted credential fields.

Layout of a stored field::

    base64( nonce[12] || ciphertext || tag[16] )

Standard alphabet with padding. Records already in the database depend on this
exact format, so it must not change.
"""

from __future__ import annotations

import base64
import binascii
from typing import Tuple

from ..core.exceptions import FormatError
from .cipher import NONCE_LENGTH, decrypt, encrypt
from .kdf import SymmetricKey


def pack(nonce: bytes, ciphertext: bytes) -> str:
    """Serialize ``nonce || ciphertext`` into an ASCII string."""
    return base64.b64encode(nonce + ciphertext).decode("ascii")


def unpack(blob: str) -> Tuple[bytes, bytes]:
    """
    Split a stored field back into ``(nonce, ciphertext)``.

    Raises ``FormatError`` for non-base64 input or when the decoded payload is
    too short to contain a nonce.
    """
    if not isinstance(blob, str) or not blob:
        raise FormatError("Encrypted field is empty")

    try:
        combined = base64.b64decode(blob.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise FormatError(f"Encrypted field is not valid base64: {e}") from None

    if len(combined) < NONCE_LENGTH:
        raise FormatError("Ciphertext too short to contain nonce")

    return combined[:NONCE_LENGTH], combined[NONCE_LENGTH:]


def seal(plaintext: str, key: SymmetricKey) -> str:
    """Encrypt one field and return its storable string."""
    nonce, ct = encrypt(plaintext, key)
    return pack(nonce, ct)


def open_sealed(blob: str, key: SymmetricKey) -> str:
    """Inverse of :func:`seal`."""
    nonce, ct = unpack(blob)
    return decrypt(nonce, ct, key)
