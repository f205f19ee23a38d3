from __future__ import annotations

import asyncio
import logging
from typing import List

import ccxt
import pytest

from tradegate.adapters.common import (
    FatalAdapterError,
    RETRY_CRITICAL,
    RETRY_FOREVER,
    RetryPolicy,
    RetryableError,
    classify_error,
    deliver,
    is_recoverable,
    retry,
)


class RecordingSleeper:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


class FlakyOperation:
    def __init__(self, failures: int, message: str) -> None:
        self.failures = failures
        self.message = message
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise RuntimeError(self.message)
        return "ok"


@pytest.mark.parametrize(
    "message",
    [
        "ESOCKETTIMEDOUT",
        "ETIMEDOUT",
        "ECONNRESET",
        "ECONNREFUSED",
        "getaddrinfo ENOTFOUND www.cryptopia.co.nz",
        "Rate limit exceeded",
        "Response code 503 (Service Unavailable)",
    ],
)
def test_known_transient_messages_are_recoverable(message: str) -> None:
    assert is_recoverable(RuntimeError(message))
    assert isinstance(classify_error(RuntimeError(message)), RetryableError)


def test_unknown_messages_are_fatal() -> None:
    error = classify_error(ValueError("Insufficient funds"))
    assert isinstance(error, FatalAdapterError)
    assert isinstance(error.cause, ValueError)
    assert not is_recoverable(RuntimeError("Response code 404"))


def test_builtin_network_errors_are_recoverable() -> None:
    assert is_recoverable(TimeoutError("read timed out"))
    assert is_recoverable(ConnectionResetError("peer went away"))


def test_critical_policy_delays_grow_and_stay_bounded() -> None:
    delays = [RETRY_CRITICAL.next_delay(i) for i in range(RETRY_CRITICAL.max_attempts - 1)]
    assert delays[0] == pytest.approx(10.0)
    assert delays[1] == pytest.approx(12.0)
    assert delays[2] == pytest.approx(14.4)
    assert all(10.0 <= d <= 60.0 for d in delays)
    assert delays == sorted(delays)
    assert RETRY_CRITICAL.next_delay(50) == 60.0


def test_forever_policy_caps_at_five_minutes() -> None:
    assert RETRY_FOREVER.forever
    delays = [RETRY_FOREVER.next_delay(i) for i in range(40)]
    assert all(10.0 <= d <= 300.0 for d in delays)
    assert delays[-1] == 300.0


def test_far_attempts_stay_at_the_cap() -> None:
    assert RETRY_FOREVER.next_delay(10_000) == 300.0
    assert RETRY_CRITICAL.next_delay(10_000) == 60.0
    assert RetryPolicy(min_delay=0.0, max_delay=0.0).next_delay(10_000) == 0.0


def test_jitter_stays_inside_policy_bounds() -> None:
    policy = RetryPolicy(max_attempts=5, min_delay=10.0, max_delay=60.0, jitter=0.5)
    for attempt in range(20):
        assert 10.0 <= policy.next_delay(attempt) <= 60.0


def test_policy_rejects_inverted_bounds() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(min_delay=30.0, max_delay=10.0)
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)


def test_retry_recovers_after_two_server_errors() -> None:
    sleeper = RecordingSleeper()
    operation = FlakyOperation(failures=2, message="Response code 503")

    result = asyncio.run(retry(operation, policy=RETRY_CRITICAL, sleeper=sleeper))

    assert result == "ok"
    assert operation.calls == 3
    assert sleeper.delays == pytest.approx([10.0, 12.0])


def test_retry_gives_up_after_ten_attempts(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="tradegate.adapters")
    sleeper = RecordingSleeper()
    operation = FlakyOperation(failures=11, message="ETIMEDOUT")

    with pytest.raises(RetryableError) as excinfo:
        asyncio.run(retry(operation, policy=RETRY_CRITICAL, sleeper=sleeper, label="buy"))

    assert operation.calls == 10
    assert excinfo.value.attempts == 10
    assert len(sleeper.delays) == 9
    assert all(10.0 <= d <= 60.0 for d in sleeper.delays)
    assert any("retry_exhausted op=buy attempts=10" in r.message for r in caplog.records)


def test_retry_surfaces_fatal_errors_immediately() -> None:
    sleeper = RecordingSleeper()
    operation = FlakyOperation(failures=5, message="Invalid nonce")

    with pytest.raises(FatalAdapterError):
        asyncio.run(retry(operation, policy=RETRY_CRITICAL, sleeper=sleeper))

    assert operation.calls == 1
    assert sleeper.delays == []


def test_forever_policy_keeps_going_until_success() -> None:
    sleeper = RecordingSleeper()
    operation = FlakyOperation(failures=25, message="ECONNRESET")

    result = asyncio.run(retry(operation, policy=RETRY_FOREVER, sleeper=sleeper))

    assert result == "ok"
    assert operation.calls == 26
    assert all(10.0 <= d <= 300.0 for d in sleeper.delays)
    assert sleeper.delays[-1] == 300.0


def test_deliver_routes_results_and_errors_to_callback() -> None:
    received: list[tuple[object, object]] = []

    async def ok() -> int:
        return 7

    async def boom() -> int:
        raise FatalAdapterError("nope")

    async def scenario() -> None:
        await deliver(ok(), lambda err, res: received.append((err, res)))
        await deliver(boom(), lambda err, res: received.append((err, res)))

    asyncio.run(scenario())

    assert received[0] == (None, 7)
    assert isinstance(received[1][0], FatalAdapterError)
    assert received[1][1] is None


@pytest.mark.parametrize(
    "error_cls",
    [ccxt.RequestTimeout, ccxt.ExchangeNotAvailable, ccxt.DDoSProtection],
)
def test_ccxt_network_errors_are_recoverable(error_cls: type) -> None:
    assert is_recoverable(error_cls("cryptopia GET failed"))
    assert isinstance(classify_error(error_cls("cryptopia GET failed")), RetryableError)


@pytest.mark.parametrize(
    "error_cls",
    [ccxt.InsufficientFunds, ccxt.OrderNotFound, ccxt.InvalidOrder, ccxt.InvalidNonce],
)
def test_ccxt_rejections_are_fatal(error_cls: type) -> None:
    assert not is_recoverable(error_cls("cryptopia rejected the request"))
    assert isinstance(classify_error(error_cls("cryptopia rejected the request")), FatalAdapterError)


def test_invalid_nonce_is_not_retried() -> None:
    sleeper = RecordingSleeper()
    calls = 0

    async def submit() -> str:
        nonlocal calls
        calls += 1
        raise ccxt.InvalidNonce("cryptopia Nonce has already been used for this request")

    with pytest.raises(FatalAdapterError):
        asyncio.run(retry(submit, policy=RETRY_CRITICAL, sleeper=sleeper))

    assert calls == 1
    assert sleeper.delays == []


def test_forever_policy_survives_thousands_of_failures() -> None:
    sleeper = RecordingSleeper()
    operation = FlakyOperation(failures=4_000, message="ETIMEDOUT")

    result = asyncio.run(retry(operation, policy=RETRY_FOREVER, sleeper=sleeper))

    assert result == "ok"
    assert operation.calls == 4_001
    assert max(sleeper.delays) == 300.0


def test_deliver_contains_callback_errors(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.ERROR, logger="tradegate.adapters")
    seen: list[object] = []

    def callback(err: object, res: object) -> None:
        seen.append(res)
        raise ValueError("engine handler broke")

    async def ok() -> int:
        return 3

    asyncio.run(deliver(ok(), callback))

    assert seen == [3]
    assert any("deliver_callback_failed" in r.message for r in caplog.records)
