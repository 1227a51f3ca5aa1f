from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest

from modcheck.adapters.http_resilience import (
    NETWORK_ERROR_MESSAGE,
    RateLimitedGateway,
    compute_backoff,
    parse_retry_after,
)
from modcheck.config.http_resilience import ResilienceConfig, RetryPolicy
from modcheck.domain.results import ApiError, RateLimited
from tests.helpers.catalog import FakeClock

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

NO_SPACING = RetryPolicy(min_interval_seconds=0.0)


def _no_jitter(_low: float, _high: float) -> float:
    return 0.0


def _config(retry: RetryPolicy) -> ResilienceConfig:
    return ResilienceConfig(
        name="forge",
        base_url="https://forge.test/api/v0/",
        retry=retry,
        ratelimit=None,
        cache=None,
    )


def _scripted(
    responses: Sequence[httpx.Response | Exception],
) -> tuple[Callable[[httpx.Request], httpx.Response], list[httpx.Request]]:
    remaining = list(responses)
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        item = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        if isinstance(item, Exception):
            raise item
        return httpx.Response(item.status_code, headers=item.headers, content=item.content)

    return handler, seen


def _gateway(
    responses: Sequence[httpx.Response | Exception],
    clock: FakeClock,
    retry: RetryPolicy | None = None,
) -> tuple[RateLimitedGateway, list[httpx.Request]]:
    handler, seen = _scripted(responses)
    gateway = RateLimitedGateway(
        _config(retry or RetryPolicy()),
        transport=httpx.MockTransport(handler),
        clock=clock,
        sleep=clock.sleep,
        jitter=_no_jitter,
    )
    return gateway, seen


def _get(gateway: RateLimitedGateway, path: str = "mods") -> object:
    async def call() -> object:
        async with gateway:
            return await gateway.get(path)

    return asyncio.run(call())


def test_compute_backoff_doubles_then_clamps() -> None:
    delays = [compute_backoff(failures, 1.0, 30.0, _no_jitter) for failures in range(1, 8)]

    assert delays == [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    assert compute_backoff(6, 1.0, 30.0, lambda _low, high: high) == 30.0
    assert compute_backoff(1, 1.0, 30.0, lambda _low, high: high) == 1.5


def test_repeated_429_backs_off_exponentially_then_gives_up() -> None:
    clock = FakeClock()
    gateway, seen = _gateway([httpx.Response(429)], clock, NO_SPACING)

    result = _get(gateway)

    assert isinstance(result, RateLimited)
    assert len(seen) == 6
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 16.0]
    assert all(delay <= 30.0 for delay in clock.sleeps)
    assert gateway.state.consecutive_failures == 6


def test_success_resets_failure_counter() -> None:
    clock = FakeClock()
    gateway, seen = _gateway(
        [httpx.Response(429), httpx.Response(429), httpx.Response(200, json={"ok": True})],
        clock,
    )

    result = _get(gateway)

    assert isinstance(result, httpx.Response)
    assert result.status_code == 200
    assert len(seen) == 3
    assert gateway.state.consecutive_failures == 0
    assert clock.sleeps == [1.0, 2.0]


def test_retry_after_header_overrides_computed_backoff() -> None:
    clock = FakeClock()
    gateway, _ = _gateway(
        [httpx.Response(429, headers={"Retry-After": "3"}), httpx.Response(200)],
        clock,
    )

    _get(gateway)

    assert clock.sleeps == [3.0]


def test_retry_after_header_is_clamped_to_max_delay() -> None:
    clock = FakeClock()
    gateway, _ = _gateway(
        [httpx.Response(429, headers={"Retry-After": "120"}), httpx.Response(200)],
        clock,
    )

    _get(gateway)

    assert clock.sleeps == [30.0]


def test_retry_after_can_be_ignored() -> None:
    clock = FakeClock()
    gateway, _ = _gateway(
        [httpx.Response(429, headers={"Retry-After": "9"}), httpx.Response(200)],
        clock,
        RetryPolicy(respect_retry_after_header=False),
    )

    _get(gateway)

    assert clock.sleeps == [1.0]


def test_backoff_deadline_only_moves_later() -> None:
    clock = FakeClock(now=5.0)
    gateway, _ = _gateway([httpx.Response(200)], clock)

    async def extend() -> None:
        await gateway._extend_backoff(10.0)  # noqa: SLF001
        await gateway._extend_backoff(2.0)  # noqa: SLF001
        await gateway.aclose()

    asyncio.run(extend())

    assert gateway.state.backoff_until == 15.0


def test_transport_errors_are_retried_then_reported() -> None:
    clock = FakeClock()
    gateway, seen = _gateway([httpx.ConnectError("refused")], clock, NO_SPACING)

    result = _get(gateway)

    assert isinstance(result, ApiError)
    assert result.message == NETWORK_ERROR_MESSAGE
    assert isinstance(result.cause, httpx.ConnectError)
    assert len(seen) == 6
    assert clock.sleeps == [1.0, 2.0, 4.0, 8.0, 16.0]


def test_other_error_statuses_are_returned_without_retry() -> None:
    clock = FakeClock()
    gateway, seen = _gateway([httpx.Response(500)], clock)

    result = _get(gateway)

    assert isinstance(result, httpx.Response)
    assert result.status_code == 500
    assert len(seen) == 1
    assert clock.sleeps == []


def test_requests_are_spaced_by_min_interval() -> None:
    clock = FakeClock()
    gateway, seen = _gateway([httpx.Response(200)], clock)

    async def call_twice() -> None:
        async with gateway:
            await gateway.get("a")
            await gateway.get("b")

    asyncio.run(call_twice())

    assert len(seen) == 2
    assert clock.sleeps == [0.25]


def test_concurrent_callers_share_one_backoff_window() -> None:
    clock = FakeClock()
    gateway, seen = _gateway(
        [httpx.Response(429), httpx.Response(200)],
        clock,
        NO_SPACING,
    )

    async def call_both() -> list[object]:
        async with gateway:
            return list(await asyncio.gather(gateway.get("a"), gateway.get("b")))

    results = asyncio.run(call_both())

    assert all(isinstance(result, httpx.Response) for result in results)
    assert len(seen) == 3
    assert gateway.state.consecutive_failures == 0


def test_cancellation_during_backoff_leaves_state_consistent() -> None:
    clock = FakeClock()
    gateway, _ = _gateway([httpx.Response(429)], clock)

    async def cancelled_sleep(_seconds: float) -> None:
        raise asyncio.CancelledError

    gateway._sleep = cancelled_sleep  # noqa: SLF001

    async def call() -> None:
        try:
            await gateway.get("mods")
        finally:
            await gateway.aclose()

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(call())

    assert gateway.state.consecutive_failures == 1
    assert gateway.state.backoff_until == 1.0


def test_default_header_is_sent_with_later_requests() -> None:
    clock = FakeClock()
    gateway, seen = _gateway([httpx.Response(200)], clock)
    gateway.set_default_header("Authorization", "Bearer secret")

    _get(gateway)

    assert seen[0].headers["Authorization"] == "Bearer secret"
    assert str(seen[0].url) == "https://forge.test/api/v0/mods"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("3", 3.0),
        (" 2.5 ", 2.5),
        ("-1", None),
        ("Wed, 21 Oct 2015 07:28:00 GMT", None),
        (None, None),
    ],
)
def test_parse_retry_after(value: str | None, expected: float | None) -> None:
    assert parse_retry_after(value) == expected
