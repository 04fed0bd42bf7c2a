"""
PeerRate Backend - Review and FavoriteReview SQLAlchemy Models
==============================================================

What:  ORM models for peer reviews (`reviews`) and per-user review
       bookmarks (`favorite_reviews`).
Who:   ReviewService writes both tables; UserService counts reviews.

Invariants enforced at write time by ReviewService:
    - posted_by_id != posted_to_id (no self-review)
    - anonymous=True ⇒ posted_by_id IS NULL, whatever the caller sent
    - reviews are immutable after creation (no update/delete operations)

Query Patterns:
    - Reviews received by a user, newest first:
      WHERE posted_to_id = :id ORDER BY created_at DESC
      → idx_reviews_posted_to_created
    - Average scores for a user:
      SELECT avg(professionalism), avg(reliability), avg(communication)
      WHERE posted_to_id = :id → same index
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from peerrate.database import Base
from peerrate.models.user import User


class ReviewState(str, enum.Enum):
    """Lifecycle state of a review. New reviews are always PUBLISHED."""

    PUBLISHED = "published"
    HIDDEN = "hidden"


class Review(Base):
    """A single peer evaluation of one user by another (or by nobody, if anonymous)."""

    __tablename__ = "reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    posted_to_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        comment="Recipient of the review",
    )

    # NULL means anonymous; see ReviewService.submit_review
    posted_by_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        comment="Author of the review; NULL for anonymous reviews",
    )

    # ── Scores (1-5) ──────────────────────────────────────────────────────
    professionalism: Mapped[int] = mapped_column(Integer, nullable=False)
    reliability: Mapped[int] = mapped_column(Integer, nullable=False)
    communication: Mapped[int] = mapped_column(Integer, nullable=False)

    comment: Mapped[str] = mapped_column(Text, nullable=False, default="")

    anonymous: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    state: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReviewState.PUBLISHED.value,
        server_default=text("'published'"),
        comment="Lifecycle state: published, hidden",
    )

    author: Mapped[User | None] = relationship(User, foreign_keys=[posted_by_id], lazy="raise")

    __table_args__ = (
        CheckConstraint("professionalism BETWEEN 1 AND 5", name="ck_reviews_professionalism"),
        CheckConstraint("reliability BETWEEN 1 AND 5", name="ck_reviews_reliability"),
        CheckConstraint("communication BETWEEN 1 AND 5", name="ck_reviews_communication"),
        CheckConstraint(
            "posted_by_id IS NULL OR posted_by_id <> posted_to_id",
            name="ck_reviews_not_self",
        ),
        # Serves newest-first listings via a backward index scan
        Index("idx_reviews_posted_to_created", "posted_to_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<Review(id={self.id}, posted_to_id={self.posted_to_id}, "
            f"anonymous={self.anonymous})>"
        )


class FavoriteReview(Base):
    """
    A user's bookmark on a review.

    The composite primary key makes (user_id, review_id) unique, which is
    what the insert-or-ignore in ReviewService.favorite_review relies on.
    """

    __tablename__ = "favorite_reviews"

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        primary_key=True,
    )
    review_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("reviews.id", ondelete="CASCADE"),
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
        return f"<FavoriteReview(user_id={self.user_id}, review_id={self.review_id})>"
