"""
Cryptographic helpers: password and recovery code hashing.

Uses argon2id (via argon2-cffi) for both. Recovery codes carry only 48 bits of
entropy, so they get the same slow salted hash as account passwords rather
than a fast digest.
"""

from __future__ import annotations

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from shared.generators import canonicalize_recovery_code

_password_hasher = PasswordHasher()


def hash_password(plain_password: str) -> str:
    """Hash *plain_password* with argon2id.

    Returns:
        Argon2 hash string (includes algorithm parameters and salt).
    """
    return _password_hasher.hash(plain_password)


def verify_password(plain_password: str, password_hash: str) -> bool:
    """Verify *plain_password* against an argon2 *password_hash*.

    argon2's verify does the constant-time comparison.

    Returns:
        ``True`` if the password matches, ``False`` for any failure
        (wrong password, invalid hash, etc.).
    """
    try:
        return _password_hasher.verify(password_hash, plain_password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def hash_recovery_code(code: str) -> str:
    """Hash the canonical (undashed, uppercase) form of a recovery code."""
    return hash_password(canonicalize_recovery_code(code))


def verify_recovery_code(code: str, code_hash: str) -> bool:
    """Check a user-entered recovery code (dashed or not) against its hash."""
    return verify_password(canonicalize_recovery_code(code), code_hash)
