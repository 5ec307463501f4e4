"""
Redis-backed key/value cache with an in-memory fallback
"""
import json
from typing import Any, Dict, List, Optional

import redis
import structlog

from studybuddy import config

logger = structlog.get_logger()


class CacheService:
    def __init__(self, redis_url: Optional[str] = config.REDIS_URL):
        self._memory_cache: Dict[str, Any] = {}
        self.redis_client = None
        if not redis_url:
            return
        try:
            self.redis_client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=1)
            self.redis_client.ping()
            logger.info("cache_connected", backend="redis")
        except redis.RedisError as e:
            logger.warning("cache_unavailable", backend="memory", error=str(e))
            self.redis_client = None

    @property
    def backend(self) -> str:
        return "redis" if self.redis_client else "memory"

    def get(self, key: str) -> Optional[Any]:
        try:
            if self.redis_client:
                value = self.redis_client.get(key)
                return json.loads(value) if value else None
            return self._memory_cache.get(key)
        except (redis.RedisError, ValueError) as e:
            logger.error("cache_get_failed", key=key, error=str(e))
            return None

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        try:
            if self.redis_client:
                payload = json.dumps(value)
                if expire:
                    return bool(self.redis_client.setex(key, expire, payload))
                return bool(self.redis_client.set(key, payload))
            self._memory_cache[key] = value
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error("cache_set_failed", key=key, error=str(e))
            return False

    def delete(self, key: str) -> bool:
        try:
            if self.redis_client:
                return bool(self.redis_client.delete(key))
            return self._memory_cache.pop(key, None) is not None
        except redis.RedisError as e:
            logger.error("cache_delete_failed", key=key, error=str(e))
            return False

    def keys(self, prefix: str) -> List[str]:
        try:
            if self.redis_client:
                return list(self.redis_client.scan_iter(match=f"{prefix}*"))
            return [k for k in self._memory_cache if k.startswith(prefix)]
        except redis.RedisError as e:
            logger.error("cache_keys_failed", prefix=prefix, error=str(e))
            return []
