import json
import threading
import pytest
from unittest.mock import MagicMock, patch

import redis

from tree_service.core.errors import CacheDegradedError
from tree_service.models.tree import PaginatedResult, Pagination, TreeNode
from tree_service.utils.cache import MemoryCacheProvider
from tree_service.utils.redis_cache import RedisCacheProvider, create_cache_provider


def make_result() -> PaginatedResult:
    return PaginatedResult(
        data=[TreeNode(id=1, label="root", children=[TreeNode(id=2, label="child")])],
        pagination=Pagination.compute(1, 10, total=2)
    )


@pytest.fixture
def redis_client():
    return MagicMock(spec=redis.Redis)


@pytest.fixture
def provider(redis_client):
    return RedisCacheProvider(client=redis_client, ttl_seconds=120)


class TestRedisCacheProvider:
    def test_put_uses_setex_with_ttl(self, provider, redis_client):
        provider.put(1, 10, make_result())

        key, ttl, payload = redis_client.setex.call_args[0]
        assert key == "tree:1:10"
        assert ttl == 120
        assert json.loads(payload) == make_result().to_dict()

    def test_get_decodes_entry(self, provider, redis_client):
        redis_client.get.return_value = json.dumps(make_result().to_dict())

        result = provider.get(1, 10)

        redis_client.get.assert_called_once_with("tree:1:10")
        assert result.to_dict() == make_result().to_dict()
        assert provider.get_stats()["hits"] == 1

    def test_get_missing_key(self, provider, redis_client):
        redis_client.get.return_value = None

        assert provider.get(1, 10) is None
        assert provider.get_stats()["misses"] == 1

    def test_connection_error_is_a_miss(self, provider, redis_client):
        redis_client.get.side_effect = redis.ConnectionError("down")

        assert provider.get(1, 10) is None

    def test_corrupt_entry_is_a_miss(self, provider, redis_client):
        redis_client.get.return_value = "{not json"

        assert provider.get(1, 10) is None

    def test_write_failure_is_silent(self, provider, redis_client):
        redis_client.setex.side_effect = redis.ConnectionError("down")

        provider.put(1, 10, make_result())

    def test_invalidate_all_scans_prefix(self, provider, redis_client):
        redis_client.scan.side_effect = [
            (7, ["tree:1:10", "tree:2:10"]),
            (0, ["tree:1:50"]),
        ]

        provider.invalidate_all()

        assert redis_client.scan.call_args_list[0].kwargs["match"] == "tree:*"
        redis_client.delete.assert_any_call("tree:1:10", "tree:2:10")
        redis_client.delete.assert_any_call("tree:1:50")

    def test_invalidate_failure_is_silent(self, provider, redis_client):
        redis_client.scan.side_effect = redis.TimeoutError("slow")

        provider.invalidate_all()

    def test_set_ttl_affects_later_puts(self, provider, redis_client):
        provider.set_ttl(30)
        provider.put(2, 10, make_result())

        assert redis_client.setex.call_args[0][1] == 30

    def test_initialize_raises_when_unreachable(self, provider, redis_client):
        redis_client.ping.side_effect = redis.ConnectionError("refused")

        with pytest.raises(CacheDegradedError):
            provider.initialize()

    def test_concurrent_reads_count_every_hit(self, provider, redis_client):
        redis_client.get.return_value = json.dumps(make_result().to_dict())

        def reader():
            for _ in range(200):
                provider.get(1, 10)

        threads = [threading.Thread(target=reader) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        stats = provider.get_stats()
        assert stats["hits"] == 8 * 200
        assert stats["misses"] == 0

    def test_stats_when_unreachable(self, provider, redis_client):
        redis_client.info.side_effect = redis.ConnectionError("down")

        stats = provider.get_stats()

        assert stats["backend"] == "redis"
        assert stats["db_size"] == 0


class TestCreateCacheProvider:
    def test_memory_without_url(self):
        provider = create_cache_provider(redis_url=None, ttl_seconds=10)
        assert isinstance(provider, MemoryCacheProvider)
        assert provider.ttl_seconds == 10

    def test_falls_back_when_redis_down(self):
        with patch.object(RedisCacheProvider, "initialize", side_effect=CacheDegradedError("down")):
            provider = create_cache_provider(redis_url="redis://localhost:6399/0")

        assert isinstance(provider, MemoryCacheProvider)

    def test_no_fallback_raises(self):
        with patch.object(RedisCacheProvider, "initialize", side_effect=CacheDegradedError("down")):
            with pytest.raises(CacheDegradedError):
                create_cache_provider(redis_url="redis://localhost:6399/0", fallback_to_memory=False)

    def test_uses_redis_when_reachable(self):
        with patch.object(RedisCacheProvider, "initialize", return_value=None):
            provider = create_cache_provider(redis_url="redis://localhost:6379/0")

        assert isinstance(provider, RedisCacheProvider)
