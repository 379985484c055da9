"""Security helpers: key derivation, field encryption and the storage codec.

This package provides the client-side credential protection scheme:
- PBKDF2-SHA256 key derivation salted by the owner's user id
- AES-256-GCM encryption of one field at a time with a fresh nonce
- base64(nonce || ciphertext) text encoding for storage and transport
"""

from .kdf import SymmetricKey, build_salt, derive_key, kdf_params
from .cipher import NONCE_LENGTH, encrypt, decrypt
from .codec import pack, unpack, seal, open_sealed

__all__ = [
    "SymmetricKey",
    "build_salt",
    "derive_key",
    "kdf_params",
    "NONCE_LENGTH",
    "encrypt",
    "decrypt",
    "pack",
    "unpack",
    "seal",
    "open_sealed",
]
