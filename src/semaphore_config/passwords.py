"""Offline password hashing for operator credentials."""
from __future__ import annotations

import bcrypt

BCRYPT_COST = 11


class PasswordHashError(RuntimeError):
    """Raised when a password cannot be hashed."""


def hash_password(plaintext: str) -> str:
    """Return the bcrypt hash of *plaintext* using a fixed cost of 11."""
    try:
        digest = bcrypt.hashpw(plaintext.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_COST))
    except (ValueError, MemoryError) as exc:
        raise PasswordHashError(f"Failed to hash password: {exc}") from exc
    return digest.decode("utf-8")


def verify_password(plaintext: str, encoded: str) -> bool:
    """Return ``True`` when *plaintext* matches the bcrypt hash *encoded*."""
    try:
        return bcrypt.checkpw(plaintext.encode("utf-8"), encoded.encode("utf-8"))
    except ValueError:
        return False


__all__ = ["BCRYPT_COST", "PasswordHashError", "hash_password", "verify_password"]
