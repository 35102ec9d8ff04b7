"""Tests for the in-memory rate limit store and client address resolution."""

from unittest.mock import MagicMock

import pytest

from dzzenos_api.core.limits.memory import InMemoryRateLimitStore
from dzzenos_api.core.middleware import _is_trusted_proxy, get_client_ip


def _request(peer, forwarded=None):
    request = MagicMock()
    request.client.host = peer
    request.headers = {"x-forwarded-for": forwarded} if forwarded else {}
    return request


class TestInMemoryRateLimitStore:
    @pytest.fixture
    def store(self):
        return InMemoryRateLimitStore(window_seconds=60)

    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, store):
        results = [await store.hit("run:1.2.3.4", limit=3) for _ in range(4)]
        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, store):
        await store.hit("run:a", limit=1)
        assert (await store.hit("run:a", limit=1)).allowed is False
        assert (await store.hit("run:b", limit=1)).allowed is True

    @pytest.mark.asyncio
    async def test_zero_limit_disables(self, store):
        for _ in range(5):
            assert (await store.hit("run:a", limit=0)).allowed is True

    @pytest.mark.asyncio
    async def test_reset_clears_buckets(self, store):
        await store.hit("run:a", limit=1)
        await store.reset()
        assert (await store.hit("run:a", limit=1)).allowed is True

    @pytest.mark.asyncio
    async def test_idle_keys_are_evicted_after_a_window(self):
        now = [1000.0]
        store = InMemoryRateLimitStore(window_seconds=60, clock=lambda: now[0])
        await store.hit("run:a", limit=5)
        await store.hit("run:b", limit=5)
        assert store.bucket_count == 2

        now[0] += 30
        await store.hit("run:b", limit=5)
        assert store.bucket_count == 2

        now[0] += 45
        result = await store.hit("run:c", limit=5)
        assert result.allowed is True
        assert store.bucket_count == 2
        assert (await store.hit("run:b", limit=2)).remaining == 0


class TestClientIp:
    def test_loopback_is_trusted_proxy(self):
        assert _is_trusted_proxy("127.0.0.1") is True
        assert _is_trusted_proxy("::1") is True
        assert _is_trusted_proxy("8.8.8.8") is False
        assert _is_trusted_proxy("not-an-ip") is False

    def test_forwarded_for_honoured_from_local_proxy(self):
        assert get_client_ip(_request("127.0.0.1", "203.0.113.9, 10.0.0.1")) == "203.0.113.9"

    def test_forwarded_for_ignored_from_remote_peer(self):
        assert get_client_ip(_request("198.51.100.7", "203.0.113.9")) == "198.51.100.7"

    def test_missing_client(self):
        request = MagicMock()
        request.client = None
        request.headers = {}
        assert get_client_ip(request) == "unknown"
