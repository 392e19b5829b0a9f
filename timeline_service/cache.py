"""
Redis sorted-set store for timelines and trending hashtags
"""
import asyncio
import redis.asyncio as redis
from redis.exceptions import RedisError
from typing import Optional, List, Tuple, Dict, Sequence
import logging

from .config import settings
from .domain.repositories import IOrderedSetStore
from .errors import DependencyError

logger = logging.getLogger(__name__)

REDIS_ERRORS = (RedisError, OSError, asyncio.TimeoutError)


def timeline_key(user_id: str) -> str:
    """Get Redis key for user's timeline"""
    return f"timeline:{user_id}"


TRENDING_KEY = "trending:hashtags"


class RedisOrderedSetStore(IOrderedSetStore):
    """Redis-backed ordered reference store"""

    def __init__(self, client: Optional[redis.Redis] = None):
        self.client: Optional[redis.Redis] = client

    async def connect(self):
        """Connect to Redis"""
        scheme = "rediss" if settings.REDIS_SSL else "redis"
        self.client = redis.from_url(
            f"{scheme}://{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}",
            password=settings.REDIS_PASSWORD if settings.REDIS_PASSWORD else None,
            encoding="utf-8",
            decode_responses=True,
            socket_timeout=settings.EXTERNAL_CALL_TIMEOUT,
            socket_connect_timeout=settings.EXTERNAL_CALL_TIMEOUT,
        )
        try:
            await self.client.ping()
            logger.info("Redis connected successfully")
        except REDIS_ERRORS as e:
            # Commands fail with DependencyError until Redis comes back
            logger.error(f"Failed to connect to Redis: {e}")

    async def disconnect(self):
        """Disconnect from Redis"""
        if self.client:
            await self.client.aclose()
            logger.info("Redis disconnected")

    def _require_client(self) -> redis.Redis:
        if not self.client:
            raise DependencyError("redis", "client not initialized")
        return self.client

    async def zadd_batch(
        self,
        entries: Sequence[Tuple[str, float, str]],
        trim_to: int = 0,
    ) -> int:
        """Insert (key, score, member) entries in one pipelined round trip"""
        if not entries:
            return 0

        client = self._require_client()
        try:
            async with client.pipeline(transaction=False) as pipe:
                touched = []
                for key, score, member in entries:
                    pipe.zadd(key, {member: score})
                    if key not in touched:
                        touched.append(key)
                if trim_to > 0:
                    for key in touched:
                        # Keep the trim_to highest scores
                        pipe.zremrangebyrank(key, 0, -(trim_to + 1))
                results = await pipe.execute(raise_on_error=False)
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"pipeline failed: {e}") from e

        failures = [r for r in results[:len(entries)] if isinstance(r, Exception)]
        if failures:
            raise DependencyError(
                "redis",
                f"{len(failures)} of {len(entries)} timeline writes failed: {failures[0]}",
            )
        return len(entries)

    async def zrevrange(self, key: str, start: int, end: int) -> List[str]:
        """Members by descending score (newest first)"""
        client = self._require_client()
        try:
            return await client.zrevrange(key, start, end)
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"ZREVRANGE {key} failed: {e}") from e

    async def zrevrange_with_scores(
        self, key: str, start: int, end: int
    ) -> List[Tuple[str, float]]:
        """(member, score) pairs by descending score"""
        client = self._require_client()
        try:
            pairs = await client.zrevrange(key, start, end, withscores=True)
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"ZREVRANGE {key} failed: {e}") from e
        return [(member, float(score)) for member, score in pairs]

    async def zcard(self, key: str) -> int:
        """Get count of items in a sorted set"""
        client = self._require_client()
        try:
            return await client.zcard(key)
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"ZCARD {key} failed: {e}") from e

    async def zincrby(self, key: str, amount: float, member: str) -> float:
        """Increment a member's score"""
        client = self._require_client()
        try:
            return float(await client.zincrby(key, amount, member))
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"ZINCRBY {key} failed: {e}") from e

    async def replace(
        self, key: str, mapping: Dict[str, float], ttl: Optional[int] = None
    ) -> None:
        """Overwrite a sorted set in one MULTI/EXEC transaction"""
        client = self._require_client()
        try:
            async with client.pipeline(transaction=True) as pipe:
                pipe.delete(key)
                if mapping:
                    pipe.zadd(key, mapping)
                    if ttl:
                        pipe.expire(key, ttl)
                await pipe.execute()
        except REDIS_ERRORS as e:
            raise DependencyError("redis", f"rebuild of {key} failed: {e}") from e
