"""Stored-secret codec for mailbox credentials and OAuth tokens.

Learn: Secret columns (smtp_password_enc, refresh_token_enc, ...) were
written by several generations of the product and old rows were never
migrated. A stored value can be:

1. the empty marker ``\\x`` or an empty string → no secret stored
2. a legacy hex envelope ``\\x<hex>`` (Postgres bytea text output); the hex
   bytes are either base64 of the secret or the secret itself
3. ``<base64 iv>:<base64 ciphertext>`` — AES-256-CBC, PKCS7 padded, key is
   SHA-256 of the server passphrase (current format)
4. bare base64 of the secret
5. the secret in plain text

decode() walks an ordered rule table and the first matching shape wins;
a value no rule matches is legacy plaintext (shape 5).
New legacy shapes are added as new rows in the table. encode() only ever
writes shape 3.

decode() returns None for "no usable secret" and never raises on malformed
data. The only exception it lets through is KeyUnavailable, when a
ciphertext row is read on a server without a passphrase.
"""

import base64
import binascii
import enum
import os
import re
from typing import Callable, Optional

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from inboxdesk.crypto.keys import KeyMaterial

EMPTY_MARKER = "\\x"
HEX_PREFIX = "\\x"
SEPARATOR = ":"

_IV_BYTES = 16
_BASE64_RE = re.compile(r"[A-Za-z0-9+/=]+")
_HEX_RE = re.compile(r"[0-9a-fA-F]+")


class SecretFormat(str, enum.Enum):
    EMPTY = "empty"
    HEX_ENVELOPE = "hex_envelope"
    CIPHERTEXT = "ciphertext"
    BASE64 = "base64"
    # Permissive fallback kept for rows written before any encoding existed.
    # It also accepts corrupt data as a "valid" secret; inspect flags it.
    PLAINTEXT = "plaintext"


def _maybe_base64_text(value: str) -> Optional[str]:
    """Decode value as base64 text, or None if it doesn't look like base64."""
    if not _BASE64_RE.fullmatch(value) or len(value) % 4 != 0:
        return None
    try:
        raw = base64.b64decode(value, validate=True)
    except binascii.Error:
        return None
    return raw.decode("utf-8", errors="replace")


# ─── Predicates ─────────────────────────────────────────


def _is_empty(value: str) -> bool:
    return not value or value == EMPTY_MARKER


def _is_hex_envelope(value: str) -> bool:
    return value.startswith(HEX_PREFIX)


def _is_ciphertext(value: str) -> bool:
    return value.count(SEPARATOR) == 1


def _is_base64(value: str) -> bool:
    return _maybe_base64_text(value) is not None


# ─── Decoders ───────────────────────────────────────────


def _absent(value: str) -> Optional[str]:
    return None


def _decode_hex_envelope(value: str) -> Optional[str]:
    hex_part = value[len(HEX_PREFIX):]
    if len(hex_part) % 2 != 0 or not _HEX_RE.fullmatch(hex_part):
        return None
    text = bytes.fromhex(hex_part).decode("utf-8", errors="replace")
    decoded = _maybe_base64_text(text)
    return decoded if decoded is not None else text


def _decode_base64(value: str) -> Optional[str]:
    return _maybe_base64_text(value)


def _passthrough(value: str) -> Optional[str]:
    return value


Rule = tuple[SecretFormat, Callable[[str], bool], Callable[[str], Optional[str]]]


class SecretCodec:
    """Reads every historical secret encoding, writes the current one."""

    def __init__(self, keys: KeyMaterial):
        self.keys = keys
        self._rules: tuple[Rule, ...] = (
            (SecretFormat.EMPTY, _is_empty, _absent),
            (SecretFormat.HEX_ENVELOPE, _is_hex_envelope, _decode_hex_envelope),
            (SecretFormat.CIPHERTEXT, _is_ciphertext, self._decrypt),
            (SecretFormat.BASE64, _is_base64, _decode_base64),
        )

    def _match(self, stored: Optional[str]) -> tuple[SecretFormat, Callable, str]:
        value = stored or ""
        for fmt, predicate, decoder in self._rules:
            if predicate(value):
                return fmt, decoder, value
        # Nothing matched: legacy plaintext.
        return SecretFormat.PLAINTEXT, _passthrough, value

    def detect_format(self, stored: Optional[str]) -> SecretFormat:
        """Which stored shape a value has. Does not decrypt."""
        fmt, _, _ = self._match(stored)
        return fmt

    def needs_reencode(self, stored: Optional[str]) -> bool:
        """True for legacy shapes that should be rewritten as ciphertext."""
        return self.detect_format(stored) not in (
            SecretFormat.EMPTY,
            SecretFormat.CIPHERTEXT,
        )

    def decode(self, stored: Optional[str]) -> Optional[str]:
        """Return the secret, or None when nothing usable is stored.

        Raises KeyUnavailable only for ciphertext rows on a server
        without a passphrase.
        """
        _, decoder, value = self._match(stored)
        return decoder(value)

    def encode(self, plaintext: str) -> str:
        """Encrypt plaintext into the canonical ``iv:ciphertext`` format."""
        key = self.keys.aes_key()
        iv = os.urandom(_IV_BYTES)

        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()

        return (
            base64.b64encode(iv).decode("ascii")
            + SEPARATOR
            + base64.b64encode(ciphertext).decode("ascii")
        )

    def _decrypt(self, value: str) -> Optional[str]:
        key = self.keys.aes_key()
        iv_b64, data_b64 = value.split(SEPARATOR)
        if not iv_b64 or not data_b64:
            return None
        try:
            iv = base64.b64decode(iv_b64, validate=True)
            data = base64.b64decode(data_b64, validate=True)
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
            padded = decryptor.update(data) + decryptor.finalize()
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(padded) + unpadder.finalize()
            # Strict: a wrong key that happens to unpad cleanly almost never
            # produces valid UTF-8. This is not an integrity check: CBC
            # rows carry no MAC, so a wrong key or tampered ciphertext is
            # rejected only with high probability. See DESIGN.md,
            # "Authenticated ciphertext".
            return plain.decode("utf-8")
        except ValueError:
            # binascii.Error, bad IV size, ragged block, bad padding and
            # UnicodeDecodeError are all ValueError subclasses.
            return None
