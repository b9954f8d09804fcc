"""Profile updates and achievement listing."""

from __future__ import annotations

from typing import Any

from recovery.errors import BadRequestError
from recovery.storage.base import Storage
from recovery.storage.records import Achievement, User

# Columns that may be cleared by sending null.
_NULLABLE = {"bio", "profile_pic"}


async def update_profile(storage: Storage, user: User, changes: dict[str, Any]) -> User:
    """Apply the fields present in ``changes``."""
    values: dict[str, Any] = {}
    for key, value in changes.items():
        if value is None and key not in _NULLABLE:
            raise BadRequestError(f"{key} cannot be null")
        values[key] = value
    if not values:
        return user
    return await storage.update_user(user.id, **values)


async def list_achievements(storage: Storage, user_id: int) -> list[Achievement]:
    return await storage.get_user_achievements(user_id)
