"""Async HTTP client with retries, rate limiting and a per-run response cache."""

from __future__ import annotations

import json
import time
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

if TYPE_CHECKING:
    from types import TracebackType

    from kfutil.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        backoff_jitter=policy.backoff_jitter,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
    )


def build_async_client(config: ResilienceConfig) -> httpx.AsyncClient:
    """Create the underlying client: retry transport, auth, headers and cache."""

    transport = RetryTransport(retry=build_retry(config.retry))
    auth = httpx.BasicAuth(*config.auth) if config.auth is not None else None
    options: dict[str, Any] = {
        "base_url": config.base_url,
        "timeout": config.timeout_seconds,
        "headers": dict(config.default_headers),
        "transport": transport,
    }
    if auth is not None:
        options["auth"] = auth

    storage, policy = _build_cache_components(config.cache)
    if storage is None:
        return httpx.AsyncClient(**options)
    return AsyncCacheClient(**options, storage=storage, policy=policy)


class ResilientClient:
    """One client profile (``config.name``) used by a single gateway."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )
        self._client = build_async_client(config)

    async def __aenter__(self) -> ResilientClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str | int] | None = None,
        json: object = None,
    ) -> httpx.Response:
        started = time.monotonic()
        if self._limiter is None:
            response = await self._send(method, url, params, json)
        else:
            async with self._limiter:
                response = await self._send(method, url, params, json)
        log.debug(
            "[%s] %s %s -> %s in %.0f ms",
            self.config.name,
            method,
            url,
            response.status_code,
            (time.monotonic() - started) * 1000,
        )
        return response

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, str | int] | None,
        body: object,
    ) -> httpx.Response:
        if body is None:
            return await self._client.request(method, url, params=params)
        return await self._client.request(method, url, params=params, json=body)


class _ShouldCacheResponseFilter(BaseFilter[HishelCacheResponse]):
    """Admit a response to the cache only when its JSON body passes the predicate."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:  # noqa: ARG002
        if body is None:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _build_cache_components(
    config: CacheConfig | None,
) -> tuple[AsyncSqliteStorage | None, FilterPolicy | None]:
    if config is None or not config.enabled:
        return None, None

    # Platform state changes during a run; nothing outlives the client.
    storage = AsyncSqliteStorage(database_path=":memory:", default_ttl=config.ttl_seconds)
    if config.should_cache is None:
        return storage, None
    return storage, FilterPolicy(
        response_filters=[_ShouldCacheResponseFilter(config.should_cache)]
    )
