"""
Unit tests for rate limiting.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from certportal.core import redis as redis_state
from certportal.core.rate_limit import RateLimitExceeded, check_rate_limit, rate_limit


def _request(host: str = "10.0.0.1"):
    request = MagicMock()
    request.client.host = host
    return request


def _redis_client(execute: AsyncMock) -> MagicMock:
    client = MagicMock()
    client.pipeline.return_value.execute = execute
    return client


class TestMemoryFallback:
    @pytest.mark.asyncio
    async def test_allows_up_to_limit(self, monkeypatch):
        monkeypatch.setattr(redis_state, "redis_client", None)

        results = [await check_rate_limit("rate_limit:test:a", 3, 60) for _ in range(4)]

        assert results == [True, True, True, False]

    @pytest.mark.asyncio
    async def test_keys_are_independent(self, monkeypatch):
        monkeypatch.setattr(redis_state, "redis_client", None)

        assert await check_rate_limit("rate_limit:test:a", 1, 60) is True
        assert await check_rate_limit("rate_limit:test:b", 1, 60) is True
        assert await check_rate_limit("rate_limit:test:a", 1, 60) is False


class TestRedisBackend:
    @pytest.mark.asyncio
    async def test_count_below_limit_is_allowed(self, monkeypatch):
        client = _redis_client(AsyncMock(return_value=[0, 2, 1, True]))
        monkeypatch.setattr(redis_state, "redis_client", client)

        assert await check_rate_limit("rate_limit:test:a", 3, 60) is True
        client.pipeline.return_value.zadd.assert_called_once()

    @pytest.mark.asyncio
    async def test_count_at_limit_is_blocked(self, monkeypatch):
        client = _redis_client(AsyncMock(return_value=[0, 3, 1, True]))
        monkeypatch.setattr(redis_state, "redis_client", client)

        assert await check_rate_limit("rate_limit:test:a", 3, 60) is False

    @pytest.mark.asyncio
    async def test_redis_error_falls_back_to_memory(self, monkeypatch):
        client = _redis_client(AsyncMock(side_effect=ConnectionError("redis down")))
        monkeypatch.setattr(redis_state, "redis_client", client)

        assert await check_rate_limit("rate_limit:test:a", 1, 60) is True
        assert await check_rate_limit("rate_limit:test:a", 1, 60) is False


class TestRateLimitDependency:
    @pytest.mark.asyncio
    async def test_raises_429_when_exceeded(self, monkeypatch):
        monkeypatch.setattr(redis_state, "redis_client", None)
        dependency = rate_limit("track_application", 1, 60)

        await dependency(_request())
        with pytest.raises(RateLimitExceeded) as exc_info:
            await dependency(_request())

        assert exc_info.value.status_code == 429
        assert exc_info.value.detail["error"] == "RATE_LIMIT_EXCEEDED"
        assert exc_info.value.headers == {"Retry-After": "60"}

    @pytest.mark.asyncio
    async def test_limit_is_per_client(self, monkeypatch):
        monkeypatch.setattr(redis_state, "redis_client", None)
        dependency = rate_limit("track_application", 1, 60)

        await dependency(_request("10.0.0.1"))
        await dependency(_request("10.0.0.2"))
