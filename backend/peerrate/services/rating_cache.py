"""
PeerRate Backend - Average Rating Cache
=======================================

What:  Key-value store for the per-user AverageRating aggregate.
How:   JSON payloads in Redis under `avg-ratings-<user id>`, written with a
       TTL (settings.avg_rating_cache_ttl, 24h by default).
Who:   ReviewService (read on get_average_rating, overwrite on submit_review).

Presence vs. value:
    get() returns None only when the key does not exist. An all-zero
    aggregate (a user with no reviews) is a real value and comes back as an
    AverageRating, never as None. Callers must test `is None`.

Failure contract:
    Connection errors and undecodable or incomplete payloads raise
    CacheError. The cache
    is never the source of truth, so ReviewService catches CacheError and
    recomputes from the reviews table.
"""

import logging
import uuid

import pydantic
from pydantic import BaseModel, ConfigDict
from redis.asyncio import Redis
from redis.exceptions import RedisError

from peerrate.config import settings
from peerrate.exceptions import CacheError
from peerrate.schemas.review import AverageRating

logger = logging.getLogger(__name__)


class CachedAverageRating(BaseModel):
    """Stored form of AverageRating: every field required, nothing extra."""
    model_config = ConfigDict(extra="forbid")

    professionalism: float
    reliability: float
    communication: float
    overall: float


class RatingCache:
    """Redis-backed cache of AverageRating values keyed by recipient user id."""

    KEY_PREFIX = "avg-ratings-"

    def __init__(self, redis: Redis, ttl_seconds: int = settings.avg_rating_cache_ttl):
        self.redis = redis
        self.ttl_seconds = ttl_seconds

    @classmethod
    def key(cls, user_id: uuid.UUID) -> str:
        return f"{cls.KEY_PREFIX}{user_id}"

    async def get(self, user_id: uuid.UUID) -> AverageRating | None:
        """
        Returns the cached aggregate, or None when the key is absent.

        Raises:
            CacheError: Redis failed, or the stored payload is not a valid
                        AverageRating document.
        """
        key = self.key(user_id)
        try:
            raw = await self.redis.get(key)
        except RedisError as e:
            raise CacheError(
                message="Could not read cached rating",
                context={"key": key, "error": str(e)},
            )

        if raw is None:
            return None

        try:
            stored = CachedAverageRating.model_validate_json(raw)
        except pydantic.ValidationError as e:
            raise CacheError(
                message="Cached rating payload is malformed",
                context={"key": key, "errors": e.error_count()},
            )
        return AverageRating(**stored.model_dump())

    async def set(self, user_id: uuid.UUID, rating: AverageRating) -> None:
        """Overwrites the entry and resets its TTL."""
        key = self.key(user_id)
        try:
            await self.redis.set(key, rating.model_dump_json(), ex=self.ttl_seconds)
        except RedisError as e:
            raise CacheError(
                message="Could not write cached rating",
                context={"key": key, "error": str(e)},
            )
        logger.debug("Cached %s for %ds", key, self.ttl_seconds)

    async def delete(self, user_id: uuid.UUID) -> None:
        """Drops the entry so the next read recomputes it."""
        key = self.key(user_id)
        try:
            await self.redis.delete(key)
        except RedisError as e:
            raise CacheError(
                message="Could not delete cached rating",
                context={"key": key, "error": str(e)},
            )
