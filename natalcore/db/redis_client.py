"""
Redis client (lazy-init).

Returns None when Redis cannot be reached at startup; the horoscope store
then runs on the in-memory backend.
"""
import logging
from typing import Optional

import redis

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None


def get_redis(url: str) -> Optional[redis.Redis]:
    global _redis_client
    if _redis_client is None:
        try:
            client = redis.from_url(url, decode_responses=True)
            client.ping()
            _redis_client = client
            logger.info("Redis connected successfully")
        except redis.RedisError as e:
            logger.warning(f"Redis not available: {e}. Horoscopes will use in-memory store only.")
            _redis_client = None
    return _redis_client


def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        _redis_client.close()
        _redis_client = None
