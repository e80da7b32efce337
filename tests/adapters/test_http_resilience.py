from __future__ import annotations

import asyncio
from typing import Any

import httpx

from kfutil.adapters.http_resilience import ResilientClient, _ShouldCacheResponseFilter  # noqa: PLC2701
from kfutil.adapters.platform import should_cache_payload
from kfutil.config.http_resilience import RateLimit, ResilienceConfig


def test_cache_filter_only_accepts_matching_json() -> None:
    response_filter = _ShouldCacheResponseFilter(should_cache_payload)
    item: Any = None

    assert response_filter.needs_body()
    assert response_filter.apply(item, b'{"StoreType": 101, "ShortName": "JKS"}')
    assert not response_filter.apply(item, b'{"Id": "s1"}')
    assert not response_filter.apply(item, b"\xff\xfe")
    assert not response_filter.apply(item, b"<html>")
    assert not response_filter.apply(item, None)


def test_rate_limited_client_sends_every_request() -> None:
    paths: list[str] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.path)
        return httpx.Response(200, json=[])

    config = ResilienceConfig(
        name="keyfactor-test",
        base_url="https://kf.example.com/KeyfactorAPI/",
        ratelimit=RateLimit(max_calls=10, per_seconds=1.0),
        cache=None,
    )

    async def exercise() -> None:
        async with ResilientClient(config) as client:
            client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
                base_url=config.base_url,
                transport=httpx.MockTransport(handler),
            )
            await client.request("GET", "Certificates", params={"pq.returnLimit": 1})
            await client.request("POST", "CertificateStores", json={})

    asyncio.run(exercise())

    assert paths == ["/KeyfactorAPI/Certificates", "/KeyfactorAPI/CertificateStores"]
