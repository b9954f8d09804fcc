"""Alembic migration tests.

Named to sort last. Runs only against a disposable database named by
RECOVERY_TEST_DATABASE_URL; existing tables are dropped first.
"""

import asyncio
import os
import subprocess
import sys
from pathlib import Path

import pytest
from sqlalchemy import text

from recovery.db.base import Base
from recovery.db.session import create_engine

DATABASE_URL = os.environ.get("RECOVERY_TEST_DATABASE_URL", "")
ROOT = Path(__file__).resolve().parent.parent

pytestmark = pytest.mark.skipif(not DATABASE_URL, reason="RECOVERY_TEST_DATABASE_URL not set")


async def _drop_everything() -> None:
    engine = create_engine(DATABASE_URL, pool_size=1)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.execute(text("DROP TABLE IF EXISTS alembic_version"))
    await engine.dispose()


def _alembic(*args: str) -> subprocess.CompletedProcess:
    return subprocess.run(
        [sys.executable, "-m", "alembic", *args],
        capture_output=True,
        text=True,
        cwd=ROOT,
        env={**os.environ, "RECOVERY_DATABASE_URL": DATABASE_URL},
    )


def test_alembic_upgrade_head() -> None:
    asyncio.run(_drop_everything())
    result = _alembic("upgrade", "head")
    assert result.returncode == 0, f"alembic upgrade failed: {result.stderr}"


def test_alembic_current_shows_head() -> None:
    result = _alembic("current")
    assert result.returncode == 0
    assert "002_interests" in result.stdout


def test_alembic_downgrade_base() -> None:
    result = _alembic("downgrade", "base")
    assert result.returncode == 0, f"alembic downgrade failed: {result.stderr}"
