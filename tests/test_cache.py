"""
Tests for the cache service fallback
"""
from unittest.mock import patch

import redis

from studybuddy.services.cache import CacheService


class TestCacheService:
    def test_memory_backend_without_url(self):
        cache = CacheService(redis_url=None)
        assert cache.backend == "memory"
        assert cache.set("patterns:history", [{"question_text": "q"}])
        assert cache.get("patterns:history") == [{"question_text": "q"}]
        assert cache.keys("patterns:") == ["patterns:history"]
        assert cache.delete("patterns:history")
        assert cache.get("patterns:history") is None

    @patch("studybuddy.services.cache.redis.from_url")
    def test_unreachable_redis_falls_back_to_memory(self, mock_from_url):
        mock_from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
        cache = CacheService(redis_url="redis://nowhere:6379/0")
        assert cache.backend == "memory"
        assert cache.redis_client is None

    @patch("studybuddy.services.cache.redis.from_url")
    def test_redis_values_are_json(self, mock_from_url):
        client = mock_from_url.return_value
        client.get.return_value = '{"count": 2}'
        cache = CacheService(redis_url="redis://localhost:6379/0")

        assert cache.backend == "redis"
        assert cache.get("stats") == {"count": 2}
        cache.set("stats", {"count": 3}, expire=60)
        client.setex.assert_called_once_with("stats", 60, '{"count": 3}')
