"""Initial schema: users, matches, challenges, progress, messages, achievements.

Revision ID: 001_initial_tables
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "001_initial_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=True)


def upgrade() -> None:
    """Create all tables."""
    # --- users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("username", sa.String(64), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(256), nullable=False),
        sa.Column("display_name", sa.String(64), nullable=False),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("interests", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("goals", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("experiences", postgresql.JSONB(), server_default="[]", nullable=False),
        sa.Column("profile_pic", sa.Text(), nullable=True),
        sa.Column("points", sa.Integer(), server_default="0", nullable=False),
        _created_at(),
        _created_at("last_active"),
    )

    # --- matches ---
    op.create_table(
        "matches",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id_1", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id_2", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("match_score", sa.Integer(), nullable=False),
        sa.Column("match_details", postgresql.JSONB(), nullable=True),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        _created_at(),
        _created_at("updated_at"),
    )
    op.create_index("idx_matches_user_1", "matches", ["user_id_1"])
    op.create_index("idx_matches_user_2", "matches", ["user_id_2"])
    op.execute(
        "ALTER TABLE matches ADD CONSTRAINT ck_matches_status "
        "CHECK (status IN ('pending', 'active', 'rejected', 'ended'))"
    )

    # --- challenges ---
    op.create_table(
        "challenges",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.BigInteger(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("challenge_type", sa.String(32), server_default="generic", nullable=False),
        sa.Column("frequency", sa.String(16), server_default="daily", nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("total_steps", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), server_default="active", nullable=False),
        _created_at(),
    )
    op.create_index("idx_challenges_match", "challenges", ["match_id"])
    op.execute(
        "ALTER TABLE challenges ADD CONSTRAINT ck_challenges_type "
        "CHECK (challenge_type IN ('generic', 'days_sober', 'check_in_streak'))"
    )

    # --- challenge_progress ---
    op.create_table(
        "challenge_progress",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column(
            "challenge_id", sa.BigInteger(), sa.ForeignKey("challenges.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("steps_completed", sa.Integer(), server_default="0", nullable=False),
        sa.Column("milestone_level", sa.Integer(), server_default="0", nullable=False),
        sa.Column("days_sober", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_sober_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("current_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("longest_streak", sa.Integer(), server_default="0", nullable=False),
        sa.Column("last_check_in", sa.DateTime(timezone=True), nullable=True),
        _created_at("last_updated"),
        sa.UniqueConstraint("challenge_id", "user_id", name="uq_challenge_progress_challenge_user"),
    )

    # --- messages ---
    op.create_table(
        "messages",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("match_id", sa.BigInteger(), sa.ForeignKey("matches.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _created_at("sent_at"),
        sa.Column("is_read", sa.Boolean(), server_default="false", nullable=False),
    )
    op.create_index("idx_messages_match_sent", "messages", ["match_id", "sent_at"])

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("title", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("points", sa.Integer(), nullable=False),
        _created_at("earned_at"),
    )
    op.create_index("idx_achievements_user", "achievements", ["user_id"])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table("achievements")
    op.drop_table("messages")
    op.drop_table("challenge_progress")
    op.drop_table("challenges")
    op.drop_table("matches")
    op.drop_table("users")
