"""Argon2id password hashing and a minimal strength check."""

from __future__ import annotations

import argon2

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)

MIN_LENGTH = 8
MAX_LENGTH = 128


class PasswordStrengthError(ValueError):
    """Raised when a password is too weak to accept."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """True if ``password`` matches. Mismatches and corrupt hashes return False."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def validate_password_strength(password: str) -> None:
    """Require 8-128 characters with at least one letter and one digit."""
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < MIN_LENGTH:
        msg = f"Password must be at least {MIN_LENGTH} characters"
        raise PasswordStrengthError(msg)
    if len(password) > MAX_LENGTH:
        msg = f"Password must not exceed {MAX_LENGTH} characters"
        raise PasswordStrengthError(msg)
    if not any(c.isalpha() for c in password):
        msg = "Password must contain at least one letter"
        raise PasswordStrengthError(msg)
    if not any(c.isdigit() for c in password):
        msg = "Password must contain at least one digit"
        raise PasswordStrengthError(msg)
