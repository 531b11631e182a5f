"""Server passphrase and AES key derivation.

Learn: The stored-secret key is SHA-256 of the configured passphrase, which
yields exactly the 32 bytes AES-256 needs. Existing ciphertext rows were
written with this derivation, so it cannot change without a re-encryption
pass over every secret column.
"""

import hashlib
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


class KeyUnavailable(Exception):
    """Raised when a ciphertext operation runs without a configured passphrase."""


@lru_cache(maxsize=8)
def derive_key(passphrase: str) -> bytes:
    """SHA-256 digest of the passphrase, computed once per passphrase."""
    return hashlib.sha256(passphrase.encode("utf-8")).digest()


@dataclass(frozen=True)
class KeyMaterial:
    """Immutable holder for the server passphrase.

    Build one per process from settings and hand it to SecretCodec.
    Tests build as many as they need.
    """

    passphrase: Optional[str] = None

    @classmethod
    def from_settings(cls, settings) -> "KeyMaterial":
        return cls(passphrase=settings.encryption_key or None)

    @property
    def available(self) -> bool:
        return bool(self.passphrase)

    def aes_key(self) -> bytes:
        if not self.passphrase:
            raise KeyUnavailable(
                "INBOXDESK_ENCRYPTION_KEY is not configured; stored secrets "
                "cannot be encrypted or decrypted."
            )
        return derive_key(self.passphrase)

    def __repr__(self) -> str:
        # Never leak the passphrase into logs or tracebacks.
        return f"KeyMaterial(available={self.available})"
