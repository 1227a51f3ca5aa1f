"""Rate-limited HTTP gateway shared by every catalog call.

All requests to one endpoint go through a single :class:`RateLimitedGateway`.
It spaces requests by a minimum interval, optionally draws from a token
bucket, and retries throttling responses and transport failures with an
exponential backoff window that every concurrent caller honours.

Two locks guard :class:`GatewayState`: ``_throttle_lock`` serializes request
spacing and ``_backoff_lock`` serializes failure-counter and deadline updates,
so a caller queued for a request slot never blocks a backoff update.
"""

from __future__ import annotations

import asyncio
import json
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, TypedDict, Unpack

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient

from modcheck.common.storage import get_http_cache_path
from modcheck.domain.results import ApiError, RateLimited

if TYPE_CHECKING:
    from types import TracebackType

    from httpx._client import UseClientDefault
    from httpx._types import (
        HeaderTypes,
        QueryParamTypes,
        RequestContent,
        RequestData,
        RequestExtensions,
        TimeoutTypes,
        URLTypes,
    )

    from modcheck.config.http_resilience import CacheConfig, ResilienceConfig, ShouldCacheHook

log = getLogger(__name__)

NETWORK_ERROR_MESSAGE = "Network error occurred"

type Clock = Callable[[], float]
type Sleep = Callable[[float], Awaitable[None]]
type Jitter = Callable[[float, float], float]
type GatewayOutcome = httpx.Response | RateLimited | ApiError


class RequestOptions(TypedDict, total=False):
    content: RequestContent | None
    data: RequestData | None
    json: object
    params: QueryParamTypes | None
    headers: HeaderTypes | None
    timeout: TimeoutTypes | UseClientDefault
    extensions: RequestExtensions | None


class AsyncClientOptions(TypedDict, total=False):
    base_url: str
    timeout: TimeoutTypes
    headers: HeaderTypes
    transport: httpx.AsyncBaseTransport


@dataclass(slots=True)
class GatewayState:
    backoff_until: float = 0.0
    last_request_time: float | None = None
    consecutive_failures: int = 0


def compute_backoff(
    failures: int,
    base: float,
    maximum: float,
    jitter: Jitter = random.uniform,
) -> float:
    """Exponential delay for the given failure count, plus jitter, capped at ``maximum``."""

    exponent = max(failures - 1, 0)
    return min(base * 2**exponent + jitter(0.0, base / 2), maximum)


def parse_retry_after(value: str | None) -> float | None:
    """Seconds from a ``Retry-After`` header; HTTP-date values are ignored."""

    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class RateLimitedGateway:
    def __init__(
        self,
        config: ResilienceConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
        jitter: Jitter = random.uniform,
    ) -> None:
        self.config = config
        self._clock = clock
        self._sleep = sleep
        self._jitter = jitter
        self._state = GatewayState()
        self._throttle_lock = asyncio.Lock()
        self._backoff_lock = asyncio.Lock()
        self._limiter: AsyncLimiter | None = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit
            else None
        )

        storage, policy = _build_cache_components(config.cache)

        client_kwargs: AsyncClientOptions = {"timeout": config.timeout_seconds}
        if config.base_url is not None:
            client_kwargs["base_url"] = config.base_url
        if config.default_headers:
            client_kwargs["headers"] = dict(config.default_headers)
        if transport is not None:
            client_kwargs["transport"] = transport

        if storage is not None:
            self._client = AsyncCacheClient(**client_kwargs, storage=storage, policy=policy)
        else:
            self._client = httpx.AsyncClient(**client_kwargs)

    @property
    def state(self) -> GatewayState:
        return self._state

    async def __aenter__(self) -> RateLimitedGateway:
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

    def set_default_header(self, name: str, value: str) -> None:
        self._client.headers[name] = value

    async def get(
        self,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> GatewayOutcome:
        return await self.request("GET", url, **kwargs)

    async def request(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> GatewayOutcome:
        """Send one request, retrying throttling and transport failures.

        Returns the response for any status other than 429, ``RateLimited``
        once 429 retries run out, or ``ApiError`` once transport retries run
        out. Cancellation propagates from any wait without touching state.
        """

        policy = self.config.retry
        attempt = 0
        while True:
            await self._wait_for_backoff()
            await self._throttle()
            try:
                response = await self._send(method, url, **kwargs)
            except httpx.TransportError as exc:
                failures = await self._record_failure()
                if attempt >= policy.max_retries:
                    log.warning("%s %s failed after %s attempts: %s", method, url, attempt + 1, exc)
                    return ApiError(NETWORK_ERROR_MESSAGE, cause=exc)
                delay = self._backoff_delay(failures)
                log.debug("Transport error on %s %s, retrying in %.2fs: %s", method, url, delay, exc)
                await self._extend_backoff(delay)
                attempt += 1
                continue

            if response.status_code == httpx.codes.TOO_MANY_REQUESTS:
                failures = await self._record_failure()
                if attempt >= policy.max_retries:
                    log.warning("%s %s still rate limited after %s attempts", method, url, attempt + 1)
                    return RateLimited()
                delay = self._retry_after(response)
                if delay is None:
                    delay = self._backoff_delay(failures)
                log.debug("Rate limited on %s %s, backing off %.2fs", method, url, delay)
                await self._extend_backoff(delay)
                attempt += 1
                continue

            if response.is_success:
                await self._reset_failures()
            return response

    async def _send(
        self,
        method: str,
        url: URLTypes,
        **kwargs: Unpack[RequestOptions],
    ) -> httpx.Response:
        if self._limiter is None:
            return await self._client.request(method, url, **kwargs)
        async with self._limiter:
            return await self._client.request(method, url, **kwargs)

    async def _wait_for_backoff(self) -> None:
        # Re-read after each sleep; another caller may have pushed the deadline out.
        while (remaining := self._state.backoff_until - self._clock()) > 0:
            await self._sleep(remaining)

    async def _throttle(self) -> None:
        interval = self.config.retry.min_interval_seconds
        async with self._throttle_lock:
            last = self._state.last_request_time
            if last is not None:
                gap = last + interval - self._clock()
                if gap > 0:
                    await self._sleep(gap)
            self._state.last_request_time = self._clock()

    async def _record_failure(self) -> int:
        async with self._backoff_lock:
            self._state.consecutive_failures += 1
            return self._state.consecutive_failures

    async def _reset_failures(self) -> None:
        async with self._backoff_lock:
            self._state.consecutive_failures = 0

    async def _extend_backoff(self, delay: float) -> None:
        async with self._backoff_lock:
            deadline = self._clock() + delay
            if deadline > self._state.backoff_until:
                self._state.backoff_until = deadline

    def _backoff_delay(self, failures: int) -> float:
        policy = self.config.retry
        return compute_backoff(
            failures,
            policy.base_delay_seconds,
            policy.max_delay_seconds,
            self._jitter,
        )

    def _retry_after(self, response: httpx.Response) -> float | None:
        policy = self.config.retry
        if not policy.respect_retry_after_header:
            return None
        hint = parse_retry_after(response.headers.get("Retry-After"))
        if hint is None:
            return None
        return min(hint, policy.max_delay_seconds)


class _ShouldCacheResponseFilter(BaseFilter[HishelCacheResponse]):
    """Hishel response filter that delegates to a simple JSON predicate."""

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

    if config.backend not in {"sqlite", "memory"}:
        msg = f"Unsupported cache backend: {config.backend}"
        raise ValueError(msg)

    if config.backend == "sqlite":
        database_path = config.sqlite_path or str(get_http_cache_path())
    else:
        database_path = ":memory:"
    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )

    policy: FilterPolicy | None = None
    if config.should_cache is not None:
        policy = FilterPolicy(response_filters=[_ShouldCacheResponseFilter(config.should_cache)])

    return storage, policy
