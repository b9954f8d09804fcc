"""Interest catalog used to pick profile interests and partner filters.

Revision ID: 002_interests
Revises: 001_initial_tables
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002_interests"
down_revision: str | None = "001_initial_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "interests",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(64), nullable=False, unique=True),
        sa.Column("category", sa.String(64), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("interests")
