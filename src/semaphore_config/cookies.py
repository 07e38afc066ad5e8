"""Session cookie secrets and the signed/encrypted cookie codec.

Secrets are stored in the configuration document as standard base64 text
(``cookie_hash`` and ``cookie_encryption``). At startup they are decoded and
wrapped into a :class:`CookieCodec` that signs every cookie with
HMAC-SHA256 and, when an encryption key is present, encrypts the payload with
AES in CTR mode.

Encoded cookie layout (URL-safe base64 of)::

    <timestamp>|<base64 payload>|<hmac>

where the HMAC covers ``<name>|<timestamp>|<base64 payload>`` so a value
issued for one cookie name cannot be replayed under another.
"""
from __future__ import annotations

import base64
import binascii
import json
import os
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

SECRET_KEY_LENGTH = 32
DEFAULT_MAX_AGE = 86400 * 30
DEFAULT_MAX_LENGTH = 4096
_AES_KEY_SIZES = (16, 24, 32)
_IV_LENGTH = 16


class CookieError(RuntimeError):
    """Raised when a cookie cannot be encoded or decoded."""


def generate_cookie_secrets() -> tuple[bytes, bytes]:
    """Return a fresh ``(hash_key, encryption_key)`` pair of 32 random bytes each."""
    return secrets.token_bytes(SECRET_KEY_LENGTH), secrets.token_bytes(SECRET_KEY_LENGTH)


def encode_secret(raw: bytes) -> str:
    """Encode raw key material using the standard base64 alphabet."""
    return base64.b64encode(raw).decode("ascii")


def decode_secret(text: str | None) -> bytes:
    """Decode base64 key material, falling back to an empty key.

    Malformed text (bad padding, characters outside the standard alphabet)
    is not an error here: the caller receives ``b""`` and still builds a
    working codec.
    """
    if not text:
        return b""
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError, ValueError):
        return b""


@dataclass(frozen=True)
class CookieCodec:
    """Sign, and optionally encrypt, cookie values."""

    hash_key: bytes
    encryption_key: bytes | None = None
    max_age: int = DEFAULT_MAX_AGE
    # Cookies younger than this are refused; 0 disables the check.
    min_age: int = 0
    max_length: int = DEFAULT_MAX_LENGTH
    clock: Callable[[], float] = field(default=time.time, repr=False, compare=False)

    @property
    def encrypts(self) -> bool:
        """Return ``True`` when payloads are encrypted as well as signed."""
        return bool(self.encryption_key)

    def encode(self, name: str, value: object) -> str:
        """Serialise *value* and return the cookie text for *name*."""
        try:
            payload = json.dumps(value, separators=(",", ":")).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise CookieError("The value could not be serialised.") from exc
        if self.encryption_key:
            payload = self._encrypt(payload)
        body = base64.urlsafe_b64encode(payload)
        timestamp = str(int(self.clock())).encode("ascii")
        mac = self._mac(name.encode("utf-8") + b"|" + timestamp + b"|" + body)
        cookie = base64.urlsafe_b64encode(timestamp + b"|" + body + b"|" + mac).decode("ascii")
        if self.max_length and len(cookie) > self.max_length:
            raise CookieError("The encoded value is too long.")
        return cookie

    def decode(self, name: str, cookie: str) -> object:
        """Verify and decode *cookie* previously produced for *name*."""
        if self.max_length and len(cookie) > self.max_length:
            raise CookieError("The value is too long.")
        try:
            raw = base64.urlsafe_b64decode(cookie.encode("ascii"))
        except (binascii.Error, UnicodeEncodeError, ValueError) as exc:
            raise CookieError("The value could not be base64-decoded.") from exc

        parts = raw.split(b"|", 2)
        if len(parts) != 3:
            raise CookieError("The value is not valid.")
        timestamp, body, mac = parts

        verifier = hmac.HMAC(self._signing_key(), hashes.SHA256())
        verifier.update(name.encode("utf-8") + b"|" + timestamp + b"|" + body)
        try:
            verifier.verify(mac)
        except InvalidSignature as exc:
            raise CookieError("The value is not valid.") from exc

        try:
            issued = int(timestamp)
        except ValueError as exc:
            raise CookieError("Invalid timestamp.") from exc
        now = int(self.clock())
        if self.min_age and issued > now - self.min_age:
            raise CookieError("Timestamp is too new.")
        if self.max_age and issued < now - self.max_age:
            raise CookieError("Expired timestamp.")

        try:
            payload = base64.urlsafe_b64decode(body)
        except (binascii.Error, ValueError) as exc:
            raise CookieError("The value could not be base64-decoded.") from exc
        if self.encryption_key:
            payload = self._decrypt(payload)
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CookieError("The value could not be deserialised.") from exc

    # Internal helpers -------------------------------------------------
    def _signing_key(self) -> bytes:
        # An unset hash key signs under an all-zero key.
        return self.hash_key or bytes(SECRET_KEY_LENGTH)

    def _mac(self, data: bytes) -> bytes:
        signer = hmac.HMAC(self._signing_key(), hashes.SHA256())
        signer.update(data)
        return signer.finalize()

    def _cipher_key(self) -> bytes:
        key = self.encryption_key or b""
        if len(key) not in _AES_KEY_SIZES:
            raise CookieError(
                f"Encryption key must be 16, 24 or 32 bytes long. Got {len(key)} bytes."
            )
        return key

    def _encrypt(self, plaintext: bytes) -> bytes:
        iv = os.urandom(_IV_LENGTH)
        encryptor = Cipher(algorithms.AES(self._cipher_key()), modes.CTR(iv)).encryptor()
        return iv + encryptor.update(plaintext) + encryptor.finalize()

    def _decrypt(self, data: bytes) -> bytes:
        key = self._cipher_key()
        if len(data) <= _IV_LENGTH:
            raise CookieError("The value could not be decrypted.")
        iv, ciphertext = data[:_IV_LENGTH], data[_IV_LENGTH:]
        decryptor = Cipher(algorithms.AES(key), modes.CTR(iv)).decryptor()
        return decryptor.update(ciphertext) + decryptor.finalize()


def build_cookie_codec(hash_key: bytes, encryption_key: bytes | None = None) -> CookieCodec:
    """Return a :class:`CookieCodec` for decoded key material.

    An empty *encryption_key* selects signing-only mode. A key with an
    unsupported AES length is accepted here and reported by
    :meth:`CookieCodec.encode` / :meth:`CookieCodec.decode`.
    """
    return CookieCodec(hash_key=bytes(hash_key), encryption_key=encryption_key or None)


__all__ = [
    "CookieCodec",
    "CookieError",
    "SECRET_KEY_LENGTH",
    "build_cookie_codec",
    "decode_secret",
    "encode_secret",
    "generate_cookie_secrets",
]
