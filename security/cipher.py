"""
AES-256-GCM encryption for secret values stored at rest.

Envelopes are three base64 segments joined by ``:``::

    base64(iv) : base64(ciphertext) : base64(tag)

The key is derived from a passphrase by truncation: the first 32 bytes of the
UTF-8 encoded passphrase are used directly as the AES-256 key. This is not a
hash-based KDF, so the passphrase itself must carry enough entropy.
"""
from __future__ import annotations

import base64
import binascii
import os
import secrets
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from utils.errors import ConfigError, WorkbenchError
from utils.logging import get_logger

logger = get_logger(__name__)

KEY_LENGTH = 32
IV_LENGTH = 12
ENVELOPE_DELIMITER = ":"


class DecryptError(WorkbenchError):
    """Envelope is malformed or failed authentication."""


def derive_key(passphrase: Optional[str]) -> bytes:
    """Return the AES-256 key for ``passphrase``.

    Raises ``ConfigError`` when the passphrase is absent or shorter than 32
    characters. Longer passphrases are truncated to their first 32 bytes.
    """
    if not passphrase or len(passphrase) < KEY_LENGTH:
        raise ConfigError(
            f"Encryption passphrase not set or too short (>={KEY_LENGTH} chars required)"
        )
    key = passphrase.encode("utf-8")[:KEY_LENGTH]
    return key


def generate_passphrase() -> str:
    """Random passphrase suitable for the encryption key environment variable."""
    return secrets.token_urlsafe(36)


def _b64decode(segment: str) -> bytes:
    try:
        raw = base64.b64decode(segment, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise DecryptError("Envelope segment is not valid base64") from exc
    # The decoder ignores the unused low bits before padding; only the
    # canonical encoding of the decoded bytes is accepted.
    if base64.b64encode(raw).decode("ascii") != segment:
        raise DecryptError("Envelope segment is not canonical base64")
    return raw


class SecretCipher:
    """Encrypts and decrypts small strings with a key fixed at construction."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_LENGTH:
            raise ConfigError(f"Encryption key must be {KEY_LENGTH} bytes")
        self._key = key

    @classmethod
    def from_passphrase(cls, passphrase: Optional[str]) -> "SecretCipher":
        return cls(derive_key(passphrase))

    def encrypt(self, plaintext: str) -> str:
        iv = os.urandom(IV_LENGTH)
        encryptor = Cipher(algorithms.AES(self._key), modes.GCM(iv)).encryptor()
        ciphertext = encryptor.update(plaintext.encode("utf-8")) + encryptor.finalize()
        return ENVELOPE_DELIMITER.join(
            base64.b64encode(part).decode("ascii") for part in (iv, ciphertext, encryptor.tag)
        )

    def decrypt(self, envelope: str) -> str:
        segments = str(envelope).split(ENVELOPE_DELIMITER)
        if len(segments) != 3:
            raise DecryptError(f"Envelope must have 3 segments, got {len(segments)}")
        iv, ciphertext, tag = (_b64decode(segment) for segment in segments)

        try:
            decryptor = Cipher(algorithms.AES(self._key), modes.GCM(iv, tag)).decryptor()
            plaintext = decryptor.update(ciphertext) + decryptor.finalize()
        except InvalidTag as exc:
            raise DecryptError("Authentication tag mismatch") from exc
        except ValueError as exc:
            # Invalid IV or tag length.
            raise DecryptError(str(exc)) from exc

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecryptError("Decrypted value is not valid UTF-8") from exc

    def reveal(self, envelope: str) -> Optional[str]:
        """Decrypt ``envelope``, returning ``None`` when it cannot be decrypted."""
        try:
            return self.decrypt(envelope)
        except DecryptError as exc:
            logger.warning("Secret value unavailable: %s", exc)
            return None
