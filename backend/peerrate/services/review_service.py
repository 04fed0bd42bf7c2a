"""
PeerRate Backend - Review Service (Business Logic Orchestrator)
===============================================================

What:  Review submission, review listing, favorites and the cache-aside
       average-rating read.
How:   Works against the request's AsyncSession and an injected RatingCache.
Who:   Called by the /api/reviews route handlers.

Submission Flow:
    ┌───────────┐    ┌────────────┐    ┌──────────┐    ┌──────────────┐
    │ Recipient │───▶│ Not self?  │───▶│ INSERT + │───▶│ Recompute avg│
    │ exists?   │    │            │    │ COMMIT   │    │ SET cache+TTL│
    └───────────┘    └────────────┘    └──────────┘    └──────────────┘
       404              400               durable         best-effort

    The review is committed before the cache is touched. There is no
    transaction spanning the database and Redis: if the process dies between
    the commit and the cache write, readers see the previous aggregate until
    the next review for that user or until the TTL expires.

Average Read Flow (cache-aside):
    GET key ── present ──▶ return cached value (zeros included)
        │
        └─ absent / error / malformed ──▶ AVG() over reviews ──▶ SET key ──▶ return

    Concurrent misses for the same user may each recompute and each write.
    The aggregate is a deterministic function of committed rows, so the
    last write wins with an equivalent value; no per-key lock is taken.
"""

import logging
import uuid
from typing import Dict, List, Set

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.attributes import set_committed_value

from peerrate.database import insert_ignore
from peerrate.exceptions import CacheError, DatabaseError, NotFoundError, ValidationError
from peerrate.models.review import FavoriteReview, Review, ReviewState
from peerrate.models.user import User
from peerrate.schemas.review import AverageRating, ReviewCreate, ReviewRecord
from peerrate.services.rating_cache import RatingCache
from peerrate.services.review_mapper import (
    author_column,
    author_for_submission,
    build_review_record,
)

logger = logging.getLogger(__name__)


class ReviewService:
    """
    Business logic layer for reviews and rating aggregates.

    Responsibilities:
        - submit_review():        validate, persist, refresh cached average
        - get_reviews_for_user(): newest-first list shaped for the viewer
        - get_review():           single review shaped for the viewer
        - get_average_rating():   cache-aside aggregate read
        - favorite_review():      idempotent bookmark
        - unfavorite_review():    bookmark removal (404 when absent)

    Error Handling Strategy:
        Validation problems raise before any write. SQLAlchemy failures are
        wrapped in DatabaseError. CacheError never reaches the caller.
    """

    def __init__(self, cache: RatingCache):
        self.cache = cache

    # ── Submission ────────────────────────────────────────────────────────

    async def submit_review(
        self,
        db: AsyncSession,
        acting_user: User,
        recipient_id: uuid.UUID,
        payload: ReviewCreate,
    ) -> ReviewRecord:
        """
        Create a review of `recipient_id` written by `acting_user`.

        Check order is fixed: a missing recipient reports NotFoundError even
        when the caller passed their own (non-existent) id.

        DatabaseError is raised only when the insert itself fails. Once the
        commit succeeds the call returns the new review even if the average
        cannot be recomputed; the stale cache entry is dropped instead.

        Raises:
            NotFoundError:   recipient does not exist
            ValidationError: acting_user is the recipient
            DatabaseError:   the insert failed (nothing was saved)
        """
        try:
            recipient = await db.get(User, recipient_id)
            if recipient is None:
                raise NotFoundError(resource="user", resource_id=str(recipient_id))

            if acting_user.id == recipient_id:
                raise ValidationError(message="You cannot review yourself", field="user_id")

            anonymous = bool(payload.anonymous)
            author = author_for_submission(acting_user.id, anonymous)

            review = Review(
                posted_to_id=recipient_id,
                posted_by_id=author_column(author),
                professionalism=payload.professionalism,
                reliability=payload.reliability,
                communication=payload.communication,
                comment=payload.comment,
                anonymous=anonymous,
                state=ReviewState.PUBLISHED.value,
            )
            db.add(review)
            await db.commit()

        except (NotFoundError, ValidationError):
            raise
        except SQLAlchemyError as e:
            logger.error("Database error submitting review for %s: %s", recipient_id, str(e))
            raise DatabaseError(
                message="Could not save the review. Please try again.",
                context={"recipient_id": str(recipient_id), "error_type": type(e).__name__},
            )

        logger.info(
            "Review %s created for user %s (anonymous=%s)",
            review.id,
            recipient_id,
            anonymous,
        )

        # The review is durable from here on; nothing below may fail the request
        try:
            await self._refresh_cached_average(db, recipient_id)
        except SQLAlchemyError as e:
            logger.error("Could not recompute average for %s after review %s: %s", recipient_id, review.id, str(e))
            await self._invalidate_cached_average(recipient_id)

        set_committed_value(review, "author", None if anonymous else acting_user)
        return build_review_record(review, acting_user.id, favorite_user_ids=())

    # ── Reads ─────────────────────────────────────────────────────────────

    async def get_reviews_for_user(
        self,
        db: AsyncSession,
        acting_user: User,
        recipient_id: uuid.UUID,
    ) -> List[ReviewRecord]:
        """
        All reviews received by `recipient_id`, newest first.

        Query plan:
            SELECT ... FROM reviews WHERE posted_to_id = :id
            ORDER BY created_at DESC, id DESC
            → idx_reviews_posted_to_created
        """
        try:
            if await db.get(User, recipient_id) is None:
                raise NotFoundError(resource="user", resource_id=str(recipient_id))

            result = await db.execute(
                self._review_query()
                .where(Review.posted_to_id == recipient_id)
                .order_by(Review.created_at.desc(), Review.id.desc())
                .execution_options(populate_existing=True)
            )
            reviews = list(result.scalars().all())

            favorites = await self._favorite_user_ids(
                db, acting_user.id, [review.id for review in reviews]
            )
            return [
                build_review_record(review, acting_user.id, favorites.get(review.id, set()))
                for review in reviews
            ]

        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error listing reviews for %s: %s", recipient_id, str(e))
            raise DatabaseError(
                message="Could not retrieve reviews. Please try again.",
                context={"recipient_id": str(recipient_id)},
            )

    async def get_review(
        self,
        db: AsyncSession,
        acting_user: User,
        review_id: uuid.UUID,
    ) -> ReviewRecord:
        try:
            review = await self._load_review(db, review_id)
            return await self._shape(db, review, acting_user.id)
        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error fetching review %s: %s", review_id, str(e))
            raise DatabaseError(
                message="Could not retrieve the review. Please try again.",
                context={"review_id": str(review_id)},
            )

    async def get_average_rating(
        self,
        db: AsyncSession,
        recipient_id: uuid.UUID,
    ) -> AverageRating:
        """
        Average scores received by `recipient_id`.

        A user without reviews (or an unknown id) yields zeros, never None.
        """
        try:
            cached = await self.cache.get(recipient_id)
        except CacheError as e:
            logger.warning("Rating cache read failed, recomputing: %s | %s", e.message, e.context)
            cached = None

        if cached is not None:
            return cached

        try:
            return await self._refresh_cached_average(db, recipient_id)
        except SQLAlchemyError as e:
            logger.error("Database error averaging ratings for %s: %s", recipient_id, str(e))
            raise DatabaseError(
                message="Could not compute the average rating. Please try again.",
                context={"recipient_id": str(recipient_id)},
            )

    # ── Favorites ─────────────────────────────────────────────────────────

    async def favorite_review(
        self,
        db: AsyncSession,
        acting_user: User,
        review_id: uuid.UUID,
    ) -> ReviewRecord:
        """
        Mark a review as a favorite of `acting_user`. Repeating the call is
        a no-op that returns the same record.

        Raises:
            NotFoundError: the review does not exist (checked before the insert)
        """
        try:
            review = await self._load_review(db, review_id)
            await insert_ignore(
                db,
                FavoriteReview,
                {"user_id": acting_user.id, "review_id": review_id},
                conflict_columns=("user_id", "review_id"),
            )
            await db.flush()
            logger.info("User %s favorited review %s", acting_user.id, review_id)
            return await self._shape(db, review, acting_user.id)

        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error favoriting review %s: %s", review_id, str(e))
            raise DatabaseError(
                message="Could not favorite the review. Please try again.",
                context={"review_id": str(review_id)},
            )

    async def unfavorite_review(
        self,
        db: AsyncSession,
        acting_user: User,
        review_id: uuid.UUID,
    ) -> ReviewRecord:
        """
        Remove `acting_user`'s favorite on a review.

        Raises:
            NotFoundError: the review does not exist, or it is not a favorite
                           of acting_user (no rows change)
        """
        try:
            review = await self._load_review(db, review_id)
            result = await db.execute(
                delete(FavoriteReview).where(
                    FavoriteReview.user_id == acting_user.id,
                    FavoriteReview.review_id == review_id,
                )
            )
            if result.rowcount == 0:
                raise NotFoundError(resource="favorite review", resource_id=str(review_id))

            await db.flush()
            logger.info("User %s unfavorited review %s", acting_user.id, review_id)
            return await self._shape(db, review, acting_user.id)

        except NotFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error unfavoriting review %s: %s", review_id, str(e))
            raise DatabaseError(
                message="Could not remove the favorite. Please try again.",
                context={"review_id": str(review_id)},
            )

    # ── Internals ─────────────────────────────────────────────────────────

    @staticmethod
    def _review_query():
        return select(Review).options(selectinload(Review.author))

    async def _load_review(self, db: AsyncSession, review_id: uuid.UUID) -> Review:
        # populate_existing: a review created in this session still has its
        # author relationship unloaded
        result = await db.execute(
            self._review_query()
            .where(Review.id == review_id)
            .execution_options(populate_existing=True)
        )
        review = result.scalar_one_or_none()
        if review is None:
            raise NotFoundError(resource="review", resource_id=str(review_id))
        return review

    async def _favorite_user_ids(
        self,
        db: AsyncSession,
        viewer_id: uuid.UUID,
        review_ids: List[uuid.UUID],
    ) -> Dict[uuid.UUID, Set[uuid.UUID]]:
        """review id → {viewer_id} for every review the viewer favorited."""
        if not review_ids:
            return {}
        result = await db.execute(
            select(FavoriteReview.review_id, FavoriteReview.user_id).where(
                FavoriteReview.user_id == viewer_id,
                FavoriteReview.review_id.in_(review_ids),
            )
        )
        favorites: Dict[uuid.UUID, Set[uuid.UUID]] = {}
        for review_id, user_id in result.all():
            favorites.setdefault(review_id, set()).add(user_id)
        return favorites

    async def _shape(self, db: AsyncSession, review: Review, viewer_id: uuid.UUID) -> ReviewRecord:
        favorites = await self._favorite_user_ids(db, viewer_id, [review.id])
        return build_review_record(review, viewer_id, favorites.get(review.id, set()))

    async def _compute_average(self, db: AsyncSession, user_id: uuid.UUID) -> AverageRating:
        result = await db.execute(
            select(
                func.avg(Review.professionalism),
                func.avg(Review.reliability),
                func.avg(Review.communication),
            ).where(Review.posted_to_id == user_id)
        )
        professionalism, reliability, communication = result.one()

        # AVG over zero rows is NULL; PostgreSQL returns Decimal otherwise
        professionalism = float(professionalism or 0)
        reliability = float(reliability or 0)
        communication = float(communication or 0)

        return AverageRating(
            professionalism=professionalism,
            reliability=reliability,
            communication=communication,
            overall=(professionalism + reliability + communication) / 3,
        )

    async def _refresh_cached_average(self, db: AsyncSession, user_id: uuid.UUID) -> AverageRating:
        """Recompute from the reviews table and overwrite the cache entry."""
        rating = await self._compute_average(db, user_id)
        try:
            await self.cache.set(user_id, rating)
        except CacheError as e:
            logger.warning("Rating cache write failed for %s: %s | %s", user_id, e.message, e.context)
        return rating

    async def _invalidate_cached_average(self, user_id: uuid.UUID) -> None:
        try:
            await self.cache.delete(user_id)
        except CacheError as e:
            logger.warning("Rating cache delete failed for %s: %s | %s", user_id, e.message, e.context)
