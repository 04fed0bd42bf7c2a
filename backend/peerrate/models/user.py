"""
PeerRate Backend - User SQLAlchemy Model
========================================

What:  ORM model for the `users` table: the identity record every review,
       favorite, connection and linked account points at.
Who:   Read by both services; mutated by profile update and picture upload.

Table Design:
    - UUID primary key (portable `Uuid` type: native on PostgreSQL,
      CHAR(32) on SQLite)
    - email is unique and immutable once created
    - profile_picture_url is NULL until the first successful upload
    - rows are never deleted by the application
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from peerrate.database import Base


class User(Base):
    """A member profile."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        unique=True,
        index=True,
        comment="Login email; unique across users",
    )

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        default="",
    )

    # Job title / one-line professional summary
    headline: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        default=None,
    )

    profile_picture_url: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        default=None,
        comment="Public URL of the uploaded picture in object storage",
    )

    is_email_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}')>"
