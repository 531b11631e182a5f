"""Encoding and decoding of stored third-party credentials.

Learn: SecretCodec is the only code that touches *_enc columns. Build it
with get_secret_codec() in request handlers, or with an explicit
KeyMaterial in scripts and tests.
"""

from functools import lru_cache

from inboxdesk.config import settings
from inboxdesk.crypto.codec import EMPTY_MARKER, SecretCodec, SecretFormat
from inboxdesk.crypto.keys import KeyMaterial, KeyUnavailable

__all__ = [
    "EMPTY_MARKER",
    "KeyMaterial",
    "KeyUnavailable",
    "SecretCodec",
    "SecretFormat",
    "get_secret_codec",
]


@lru_cache(maxsize=1)
def get_secret_codec() -> SecretCodec:
    """Process-wide codec built from settings (FastAPI dependency)."""
    return SecretCodec(KeyMaterial.from_settings(settings))
