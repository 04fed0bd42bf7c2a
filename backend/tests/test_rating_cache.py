"""
PeerRate Backend - Rating Cache Tests
=====================================

What:  RatingCache over a mocked redis.asyncio client.

What we test:
    ✅ Absent key → None; all-zero payload → a value, not None
    ✅ SET carries the configured TTL
    ✅ Redis errors and malformed payloads → CacheError
"""

from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from peerrate.exceptions import CacheError
from peerrate.schemas.review import AverageRating
from peerrate.services.rating_cache import RatingCache


class TestRatingCache:

    def setup_method(self):
        self.redis = AsyncMock()
        self.cache = RatingCache(self.redis, ttl_seconds=120)
        self.user_id = uuid4()

    def test_key_format(self):
        assert RatingCache.key(self.user_id) == f"avg-ratings-{self.user_id}"

    @pytest.mark.asyncio
    async def test_absent_key_returns_none(self):
        self.redis.get.return_value = None

        assert await self.cache.get(self.user_id) is None
        self.redis.get.assert_awaited_once_with(f"avg-ratings-{self.user_id}")

    @pytest.mark.asyncio
    async def test_zero_payload_is_a_hit(self):
        self.redis.get.return_value = AverageRating().model_dump_json()

        result = await self.cache.get(self.user_id)

        assert result is not None
        assert result == AverageRating()

    @pytest.mark.asyncio
    async def test_set_uses_ttl(self):
        rating = AverageRating(professionalism=4.0, reliability=3.0, communication=2.0, overall=3.0)

        await self.cache.set(self.user_id, rating)

        self.redis.set.assert_awaited_once_with(
            f"avg-ratings-{self.user_id}",
            rating.model_dump_json(),
            ex=120,
        )

    @pytest.mark.asyncio
    async def test_redis_error_on_get_raises_cache_error(self):
        self.redis.get.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheError):
            await self.cache.get(self.user_id)

    @pytest.mark.asyncio
    async def test_redis_error_on_set_raises_cache_error(self):
        self.redis.set.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheError):
            await self.cache.set(self.user_id, AverageRating())

    @pytest.mark.asyncio
    async def test_malformed_payload_raises_cache_error(self):
        self.redis.get.return_value = '{"professionalism": "lots"}'

        with pytest.raises(CacheError) as exc_info:
            await self.cache.get(self.user_id)

        assert "malformed" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            "{}",
            '{"unrelated": 1}',
            '{"professionalism": 4, "reliability": 4, "communication": 4}',
            '{"professionalism": 4, "reliability": 4, "communication": 4, "overall": 4, "extra": 1}',
        ],
    )
    async def test_incomplete_payload_raises_cache_error(self, payload):
        self.redis.get.return_value = payload

        with pytest.raises(CacheError):
            await self.cache.get(self.user_id)

    @pytest.mark.asyncio
    async def test_delete_removes_key(self):
        await self.cache.delete(self.user_id)

        self.redis.delete.assert_awaited_once_with(f"avg-ratings-{self.user_id}")

    @pytest.mark.asyncio
    async def test_redis_error_on_delete_raises_cache_error(self):
        self.redis.delete.side_effect = RedisConnectionError("refused")

        with pytest.raises(CacheError):
            await self.cache.delete(self.user_id)
