"""
PeerRate Backend - Connection and LinkedSocialAccount SQLAlchemy Models
=======================================================================

What:  Follow edges between users (`connections`) and third-party accounts
       linked to a user (`linked_social_accounts`).
Who:   UserService (profile counts, follow/unfollow, social linking).
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey, String, Text, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from peerrate.database import Base


class Connection(Base):
    """follower_id follows following_id. One row per ordered pair."""

    __tablename__ = "connections"

    follower_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    following_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<Connection({self.follower_id} -> {self.following_id})>"


class LinkedSocialAccount(Base):
    """An external (google/github/linkedin) account attached to a user."""

    __tablename__ = "linked_social_accounts"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    platform: Mapped[str] = mapped_column(String(50), nullable=False)

    # Email reported by the provider at link time
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    access_token: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<LinkedSocialAccount(user_id={self.user_id}, platform='{self.platform}')>"
