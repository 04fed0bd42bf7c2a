"""Create users, reviews, favorites, connections and linked accounts

Revision ID: 001
Revises: None
Create Date: 2025-01-15 00:00:00.000000+00:00

What:  Initial PeerRate schema.
How:   PostgreSQL UUID keys with gen_random_uuid() server defaults and
       TIMESTAMP WITH TIME ZONE columns.

Rollback: downgrade() drops every table (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        server_default=sa.text("gen_random_uuid()"),
        nullable=False,
    )


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.TIMESTAMP(timezone=True),
        server_default=sa.text("CURRENT_TIMESTAMP"),
        nullable=False,
    )


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        _uuid_pk(),
        sa.Column("email", sa.String(320), nullable=False, comment="Login email; unique across users"),
        sa.Column("name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("headline", sa.String(255), nullable=True),
        sa.Column(
            "profile_picture_url",
            sa.String(1024),
            nullable=True,
            comment="Public URL of the uploaded picture in object storage",
        ),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at("joined_at"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── reviews ───────────────────────────────────────────────────────────
    op.create_table(
        "reviews",
        _uuid_pk(),
        sa.Column("posted_to_id", postgresql.UUID(as_uuid=True), nullable=False),
        # NULL for anonymous reviews
        sa.Column("posted_by_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("professionalism", sa.Integer(), nullable=False),
        sa.Column("reliability", sa.Integer(), nullable=False),
        sa.Column("communication", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("anonymous", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _created_at(),
        sa.Column(
            "state",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'published'"),
            comment="Lifecycle state: published, hidden",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["posted_to_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["posted_by_id"], ["users.id"], ondelete="SET NULL"),
        sa.CheckConstraint("professionalism BETWEEN 1 AND 5", name="ck_reviews_professionalism"),
        sa.CheckConstraint("reliability BETWEEN 1 AND 5", name="ck_reviews_reliability"),
        sa.CheckConstraint("communication BETWEEN 1 AND 5", name="ck_reviews_communication"),
        sa.CheckConstraint(
            "posted_by_id IS NULL OR posted_by_id <> posted_to_id",
            name="ck_reviews_not_self",
        ),
    )
    op.create_index("idx_reviews_posted_to_created", "reviews", ["posted_to_id", "created_at"])

    # ── favorite_reviews ──────────────────────────────────────────────────
    op.create_table(
        "favorite_reviews",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("review_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("user_id", "review_id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["review_id"], ["reviews.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_favorite_reviews_review_id", "favorite_reviews", ["review_id"])

    # ── connections ───────────────────────────────────────────────────────
    op.create_table(
        "connections",
        sa.Column("follower_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("following_id", postgresql.UUID(as_uuid=True), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("follower_id", "following_id"),
        sa.ForeignKeyConstraint(["follower_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["following_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_connections_following_id", "connections", ["following_id"])

    # ── linked_social_accounts ────────────────────────────────────────────
    op.create_table(
        "linked_social_accounts",
        _uuid_pk(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("platform", sa.String(50), nullable=False),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_linked_social_accounts_user_id", "linked_social_accounts", ["user_id"])


def downgrade() -> None:
    op.drop_table("linked_social_accounts")
    op.drop_table("connections")
    op.drop_table("favorite_reviews")
    op.drop_index("idx_reviews_posted_to_created", table_name="reviews")
    op.drop_table("reviews")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
