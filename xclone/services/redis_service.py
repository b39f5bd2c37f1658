# xclone/services/redis_service.py
from typing import Optional

from redis.asyncio import Redis
from xclone.config import settings


class RedisService:
    def __init__(self, url: Optional[str] = None):
        self.redis: Redis = Redis.from_url(url or settings.redis_url, decode_responses=True)

    async def setex(self, key: str, seconds: int, value: str):
        """Set a key that expires after the given number of seconds"""
        await self.redis.setex(key, seconds, value)

    async def get(self, key: str):
        """Get the value of a key"""
        return await self.redis.get(key)

    async def close(self):
        """Close the Redis connection"""
        await self.redis.aclose()


_redis_service: Optional[RedisService] = None


def get_redis() -> RedisService:
    """Dependency returning the process wide Redis client"""
    global _redis_service
    if _redis_service is None:
        _redis_service = RedisService()
    return _redis_service


async def close_redis():
    global _redis_service
    if _redis_service is not None:
        await _redis_service.close()
        _redis_service = None
