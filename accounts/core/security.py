"""Security helpers (hashing, verification and reset codes)."""

from __future__ import annotations

import secrets
import string

from argon2 import PasswordHasher, exceptions as argon_exc

_ph = PasswordHasher()
_PREFIX = "argon2$"
_CODE_ALPHABET = string.ascii_uppercase + string.digits


def hash_password(password: str) -> str:
    """Create a salted Argon2 hash with a prefix for detection."""
    hashed = _ph.hash(password)
    return f"{_PREFIX}{hashed}"


def verify_password(password: str, stored_hash: str | None) -> bool:
    """Check ``password`` against a stored hash.

    Argon2 verification is constant-time; anything that is not one of our
    hashes never verifies.
    """
    stored = stored_hash or ""
    if not stored.startswith(_PREFIX):
        return False
    hashed = stored[len(_PREFIX) :]
    try:
        return _ph.verify(hashed, password)
    except (argon_exc.VerifyMismatchError, argon_exc.VerificationError, argon_exc.InvalidHashError):
        return False


def needs_rehash(stored_hash: str | None) -> bool:
    stored = stored_hash or ""
    if not stored.startswith(_PREFIX):
        return True
    try:
        return _ph.check_needs_rehash(stored[len(_PREFIX) :])
    except argon_exc.InvalidHashError:
        return True


def is_password_hash(value: str | None) -> bool:
    return bool(value) and str(value).startswith(_PREFIX)


def generate_reset_code(length: int = 8) -> str:
    return "".join(secrets.choice(_CODE_ALPHABET) for _ in range(length))


def codes_match(expected: str, supplied: object) -> bool:
    if not isinstance(supplied, str):
        return False
    return secrets.compare_digest(expected.encode(), supplied.encode())
