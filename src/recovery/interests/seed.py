"""Interest catalog seed data."""

from __future__ import annotations

import logging

from recovery.storage.base import Storage

logger = logging.getLogger(__name__)

INTEREST_SEED_DATA: list[dict[str, str]] = [
    {"name": "Anxiety Management", "category": "Mental Health"},
    {"name": "Depression Support", "category": "Mental Health"},
    {"name": "Stress Reduction", "category": "Mental Health"},
    {"name": "Fitness Goals", "category": "Health"},
    {"name": "Weight Management", "category": "Health"},
    {"name": "Nutrition", "category": "Health"},
    {"name": "Career Development", "category": "Professional"},
    {"name": "Time Management", "category": "Professional"},
    {"name": "Work-Life Balance", "category": "Professional"},
    {"name": "Personal Finance", "category": "Life Skills"},
    {"name": "Relationship Issues", "category": "Life Skills"},
    {"name": "Parenting Support", "category": "Life Skills"},
    {"name": "Addiction Recovery", "category": "Recovery"},
    {"name": "Grief Processing", "category": "Recovery"},
    {"name": "Trauma Support", "category": "Recovery"},
    {"name": "Creative Projects", "category": "Personal Growth"},
    {"name": "Learning New Skills", "category": "Personal Growth"},
    {"name": "Habit Building", "category": "Personal Growth"},
]


async def seed_interests(storage: Storage) -> int:
    """Insert any missing catalog entries. Returns the catalog size afterwards."""
    for interest in INTEREST_SEED_DATA:
        await storage.create_interest(interest["name"], interest["category"])
    count = len(await storage.list_interests())
    logger.info("Seeded interest catalog (%d entries)", count)
    return count
