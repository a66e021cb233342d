"""
Tests for the sliding-window rate limiter
"""
from types import SimpleNamespace

import pytest
from stubs import FakeClock

from zenberry_assistant.rate_limiter import InMemoryRateLimiter, client_key


@pytest.mark.asyncio
async def test_allows_up_to_limit_then_blocks():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=3, window_seconds=60, clock=clock)

    results = [await limiter.hit("1.2.3.4") for _ in range(4)]

    assert [allowed for allowed, _ in results] == [True, True, True, False]
    assert results[-1][1] == 60


@pytest.mark.asyncio
async def test_window_slides():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=clock)

    assert (await limiter.hit("a"))[0] is True
    clock.advance(30)
    allowed, retry_after = await limiter.hit("a")
    assert allowed is False
    assert retry_after == 30
    clock.advance(30)
    assert (await limiter.hit("a"))[0] is True


@pytest.mark.asyncio
async def test_keys_are_independent():
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    assert (await limiter.hit("a"))[0] is True
    assert (await limiter.hit("b"))[0] is True


@pytest.mark.asyncio
async def test_reset():
    limiter = InMemoryRateLimiter(max_requests=1, window_seconds=60, clock=FakeClock())
    await limiter.hit("a")
    limiter.reset("a")
    assert (await limiter.hit("a"))[0] is True


@pytest.mark.asyncio
async def test_idle_keys_swept_once_per_window():
    clock = FakeClock()
    limiter = InMemoryRateLimiter(max_requests=5, window_seconds=60, clock=clock)
    await limiter.hit("a")
    await limiter.hit("b")

    clock.advance(30)
    await limiter.hit("c")
    assert set(limiter._requests) == {"a", "b", "c"}

    clock.advance(31)
    await limiter.hit("c")
    assert set(limiter._requests) == {"c"}


def _request(headers, host="10.0.0.1"):
    return SimpleNamespace(headers=headers, client=SimpleNamespace(host=host))


def test_client_key_ignores_forwarded_headers_by_default():
    headers = {"x-forwarded-for": "9.9.9.9", "x-real-ip": "8.8.8.8"}
    assert client_key(_request(headers)) == "10.0.0.1"


def test_client_key_prefers_forwarded_for_behind_proxy():
    assert client_key(_request({"x-forwarded-for": "9.9.9.9, 10.0.0.2"}), trust_proxy_headers=True) == "9.9.9.9"


def test_client_key_uses_real_ip_behind_proxy():
    assert client_key(_request({"x-real-ip": " 8.8.8.8 "}), trust_proxy_headers=True) == "8.8.8.8"


def test_client_key_falls_back_to_peer():
    assert client_key(_request({})) == "10.0.0.1"
