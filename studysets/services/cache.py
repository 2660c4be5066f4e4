"""
Key/value cache for values that are expensive to recompute (LLM-inferred subjects).

Backed by Redis when it answers a ping at startup; otherwise an in-process dict
so a missing Redis never takes the API down.
"""
import json
import time
from typing import Any, Callable, Optional

import redis
import structlog

from studysets import config

logger = structlog.get_logger()

KEY_PREFIX = "studysets"


def subject_cache_key(category_name: str) -> str:
    return f"subject:{category_name.strip().lower()}"


class CacheService:
    def __init__(self, redis_url: str = config.REDIS_URL):
        # key -> (expires_at, value)
        self._memory = {}
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
            self.redis_client.ping()
            logger.info("cache_backend_selected", backend="redis")
        except (redis.RedisError, ValueError) as e:
            logger.warning("cache_backend_selected", backend="memory", reason=str(e))
            self.redis_client = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client is not None else "memory"

    @staticmethod
    def _key(key: str) -> str:
        return f"{KEY_PREFIX}:{key}"

    def get(self, key: str) -> Optional[Any]:
        if self.redis_client is None:
            entry = self._memory.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at < time.monotonic():
                del self._memory[key]
                return None
            return value
        try:
            raw = self.redis_client.get(self._key(key))
        except redis.RedisError as e:
            logger.error("cache_get_failed", key=key, error=str(e))
            return None
        return json.loads(raw) if raw else None

    def set(self, key: str, value: Any, expire: int = 3600) -> bool:
        if self.redis_client is None:
            self._memory[key] = (time.monotonic() + expire, value)
            return True
        try:
            return bool(self.redis_client.setex(self._key(key), expire, json.dumps(value)))
        except redis.RedisError as e:
            logger.error("cache_set_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        if self.redis_client is None:
            return self._memory.pop(key, None) is not None
        try:
            return bool(self.redis_client.delete(self._key(key)))
        except redis.RedisError as e:
            logger.error("cache_delete_failed", key=key, error=str(e))
            return False

    def remember(self, key: str, loader: Callable[[], Any], expire: int = 3600) -> Any:
        """Return the cached value, or call `loader` and cache a non-empty result."""
        cached = self.get(key)
        if cached is not None:
            logger.debug("cache_hit", key=key)
            return cached
        value = loader()
        if value:
            self.set(key, value, expire=expire)
        return value


# Global cache instance
cache = CacheService()
