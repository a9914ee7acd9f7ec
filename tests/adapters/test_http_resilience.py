from __future__ import annotations

import asyncio

import httpx
import pytest

from listingsync.adapters.http_resilience import (
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    ResilientClient,
    RetryPolicy,
    build_retry,
)
from listingsync.adapters.http_resilience import _build_cache_components  # noqa: PLC2701


def test_build_retry_never_allows_post() -> None:
    retry = build_retry(RetryPolicy(total=3))

    assert retry.total == 3
    assert "POST" not in {method.upper() for method in retry.allowed_methods}
    assert "PUT" in {method.upper() for method in retry.allowed_methods}


def test_cache_components_disabled() -> None:
    assert _build_cache_components(None) == (None, None)
    assert _build_cache_components(CacheConfig(enabled=False)) == (None, None)


def test_cache_components_reject_unknown_backend() -> None:
    with pytest.raises(ValueError, match="Unsupported cache backend"):
        _build_cache_components(CacheConfig(backend="redis"))  # type: ignore[arg-type]


def test_client_sends_verbs_through_transport() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        return httpx.Response(200, json={"ok": True})

    async def scenario() -> None:
        client = ResilientClient(
            ResilienceConfig(
                name="test",
                base_url="https://api.test",
                retry=RetryPolicy(total=0),
                ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
                cache=None,
            )
        )
        client._client = httpx.AsyncClient(  # noqa: SLF001
            base_url="https://api.test", transport=httpx.MockTransport(handler)
        )
        async with client:
            await client.get("/a")
            await client.put("/b", json={"comment": "hi"})
            await client.delete("/c")

    asyncio.run(scenario())

    assert seen == [("GET", "/a"), ("PUT", "/b"), ("DELETE", "/c")]
