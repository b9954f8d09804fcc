"""Pick the storage backend named in settings."""

from __future__ import annotations

from recovery.config import Settings
from recovery.storage.base import Storage
from recovery.storage.database import DatabaseStorage
from recovery.storage.memory import MemStorage


def build_storage(settings: Settings) -> Storage:
    """Return a storage backend for ``settings.storage_backend``."""
    backend = settings.storage_backend.lower()
    if backend == "memory":
        return MemStorage(credit_early_steps=settings.checkin_credit_early_steps)
    if backend == "database":
        return DatabaseStorage.from_url(
            settings.database_url,
            pool_size=settings.database_pool_size,
            credit_early_steps=settings.checkin_credit_early_steps,
        )
    msg = f"Unknown storage backend: {settings.storage_backend}"
    raise ValueError(msg)
