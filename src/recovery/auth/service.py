"""Registration and credential checks."""

from __future__ import annotations

import logging

from recovery.auth.password import hash_password, validate_password_strength, verify_password
from recovery.clock import utcnow
from recovery.errors import ConflictError
from recovery.storage.base import Storage
from recovery.storage.records import User

logger = logging.getLogger(__name__)


async def register_user(
    storage: Storage,
    *,
    username: str,
    display_name: str,
    email: str,
    password: str,
    bio: str | None = None,
    interests: list[str] | None = None,
    goals: list[str] | None = None,
    experiences: list[str] | None = None,
) -> User:
    """Create an account. Raises PasswordStrengthError or ConflictError."""
    validate_password_strength(password)

    if await storage.get_user_by_username(username) is not None:
        raise ConflictError("Username already registered")
    if await storage.get_user_by_email(email) is not None:
        raise ConflictError("Email already registered")

    user = await storage.create_user(
        username=username,
        password_hash=hash_password(password),
        display_name=display_name,
        email=email,
        bio=bio,
        interests=interests,
        goals=goals,
        experiences=experiences,
    )
    logger.info("Registered user %s (%s)", user.id, username)
    return user


async def authenticate_user(storage: Storage, username: str, password: str) -> User | None:
    """Return the user for valid credentials, else None. Touches ``last_active``."""
    user = await storage.get_user_by_username(username)
    if user is None or not verify_password(password, user.password_hash):
        return None
    return await storage.update_user(user.id, last_active=utcnow())
