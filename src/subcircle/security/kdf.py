"""Password-based key derivation for credential records."""
from typing import Dict

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..core.exceptions import ValidationError

PBKDF2_ITERATIONS = 100_000
KEY_LENGTH = 32  # AES-256
SALT_PREFIX = "subcircle-"
SALT_VERSION = "2024"


class SymmetricKey:
    """
    Derived AES-256-GCM key, usable only for encrypt/decrypt.

    The raw bytes are handed straight to :class:`AESGCM` and not kept on this
    object, so callers cannot export them.
    """

    __slots__ = ("_aead",)

    def __init__(self, raw: bytes):
        if len(raw) != KEY_LENGTH:
            raise ValueError("SymmetricKey requires a 256-bit key")
        self._aead = AESGCM(raw)

    @property
    def aead(self) -> AESGCM:
        return self._aead

    def __repr__(self) -> str:
        return "SymmetricKey(<hidden>)"


def build_salt(user_id: str) -> bytes:
    """
    Return the deterministic salt for ``user_id``.

    The salt is not random and is never stored: the same (password, user)
    pair must always derive the same key so that records saved earlier stay
    decryptable. Replacing this with a random salt breaks every stored record.
    """
    return f"{SALT_PREFIX}{user_id}-{SALT_VERSION}".encode("utf-8")


def derive_key(master_password: str, user_id: str) -> SymmetricKey:
    """
    Derive the credential key from a master password using PBKDF2-HMAC-SHA256.

    A mismatched ``user_id`` silently yields a different key; that is caught
    later by the cipher's tag check, not here.
    """
    if not master_password:
        raise ValidationError("Master password is required")
    if not user_id:
        raise ValidationError("User id is required for key derivation")

    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=build_salt(user_id),
        iterations=PBKDF2_ITERATIONS,
    )
    return SymmetricKey(kdf.derive(master_password.encode("utf-8")))


def kdf_params() -> Dict:
    return {
        "algo": "pbkdf2",
        "hash": "sha256",
        "iterations": PBKDF2_ITERATIONS,
        "key_len": KEY_LENGTH,
        "salt": f"{SALT_PREFIX}{{user_id}}-{SALT_VERSION}",
    }
