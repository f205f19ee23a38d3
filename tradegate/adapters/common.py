from __future__ import annotations

import asyncio
import logging
import random
import re
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Optional,
    TypeVar,
)

# ccxt is optional at import time so the retry machinery stays usable with
# injected collaborators; classification simply skips the ccxt families.
try:  # pragma: no cover - exercised via adapter usage
    import ccxt  # type: ignore
except Exception:  # pragma: no cover - fallback path
    ccxt = None  # type: ignore

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "RemoteError",
    "RetryableError",
    "FatalAdapterError",
    "RetryPolicy",
    "RETRY_CRITICAL",
    "RETRY_FOREVER",
    "RECOVERABLE_ERRORS",
    "is_recoverable",
    "classify_error",
    "retry",
    "deliver",
]

_LOGGER = logging.getLogger("tradegate.adapters")


class AdapterError(RuntimeError):
    """Base exception for trader adapters."""


class ConfigurationError(AdapterError):
    """Raised when the adapter is missing configuration it needs."""


class RemoteError(AdapterError):
    """Failure reported by the exchange client."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause
        self.attempts = 0


class RetryableError(RemoteError):
    """Errors that should trigger retry/backoff."""


class FatalAdapterError(RemoteError):
    """Errors that should surface immediately."""


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule; ``max_attempts=None`` retries until success."""

    max_attempts: Optional[int] = 10
    factor: float = 1.2
    min_delay: float = 10.0
    max_delay: float = 60.0
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_attempts is not None and self.max_attempts <= 0:
            raise ValueError("RetryPolicy requires a positive attempt budget")
        if self.min_delay < 0 or self.max_delay < self.min_delay:
            raise ValueError("RetryPolicy requires 0 <= min_delay <= max_delay")

    @property
    def forever(self) -> bool:
        return self.max_attempts is None

    def next_delay(self, attempt: int) -> float:
        if not self.min_delay:
            return 0.0
        try:
            growth = self.factor**attempt
        except OverflowError:
            growth = float("inf")
        delay = min(self.min_delay * growth, self.max_delay)
        if self.jitter:
            delay += random.uniform(-self.jitter, self.jitter) * delay
            return min(max(delay, self.min_delay), self.max_delay)
        return delay


RETRY_CRITICAL = RetryPolicy(max_attempts=10, factor=1.2, min_delay=10.0, max_delay=60.0)
RETRY_FOREVER = RetryPolicy(max_attempts=None, factor=1.2, min_delay=10.0, max_delay=300.0)

# The exchange's error text changes over time; extend this list as new
# transient messages show up in the logs.
RECOVERABLE_ERRORS = re.compile(
    r"(SOCKETTIMEDOUT|TIMEDOUT|CONNRESET|CONNREFUSED|NOTFOUND"
    r"|Rate limit exceeded|Response code 5)"
)


def is_recoverable(exc: BaseException) -> bool:
    """Return True when *exc* looks like a transient network/server failure."""

    if isinstance(exc, RetryableError):
        return True
    if isinstance(exc, FatalAdapterError):
        return False
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return True
    # ccxt files InvalidNonce under NetworkError; resubmitting with the same
    # nonce fails the same way.
    if ccxt is not None and isinstance(exc, ccxt.InvalidNonce):  # type: ignore[attr-defined]
        return False
    if ccxt is not None and isinstance(exc, ccxt.NetworkError):  # type: ignore[attr-defined]
        return True
    return bool(RECOVERABLE_ERRORS.search(str(exc)))


def classify_error(exc: BaseException) -> RemoteError:
    if isinstance(exc, RemoteError):
        return exc
    message = str(exc) or type(exc).__name__
    if is_recoverable(exc):
        classified: RemoteError = RetryableError(message, cause=exc)
    else:
        classified = FatalAdapterError(message, cause=exc)
    classified.__cause__ = exc
    return classified


T = TypeVar("T")


async def retry(
    operation: Callable[[], Awaitable[T]],
    *,
    policy: RetryPolicy,
    classify: Callable[[BaseException], BaseException] = classify_error,
    sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "operation",
    logger: logging.Logger | None = None,
) -> T:
    """Await *operation* until it succeeds or the policy gives up.

    *operation* is re-invoked end-to-end on every attempt, so it must be safe
    to repeat. Fatal errors are raised on the first occurrence; retryable
    errors are raised once ``policy.max_attempts`` attempts have failed.
    """

    log = logger or _LOGGER
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            classified = classify(exc)
            attempt += 1
            if isinstance(classified, RemoteError):
                classified.attempts = attempt
            if not isinstance(classified, RetryableError):
                log.error(
                    "retry_fatal op=%s attempt=%d error=%s", label, attempt, classified
                )
                raise classified
            if policy.max_attempts is not None and attempt >= policy.max_attempts:
                log.error(
                    "retry_exhausted op=%s attempts=%d error=%s",
                    label,
                    attempt,
                    classified,
                )
                raise classified
            delay = policy.next_delay(attempt - 1)
            log.warning(
                "retry_scheduled op=%s attempt=%d delay=%.1fs error=%s",
                label,
                attempt,
                delay,
                classified,
            )
        await sleeper(delay)


async def deliver(
    awaitable: Awaitable[T],
    callback: Callable[[Optional[BaseException], Optional[T]], Any],
) -> None:
    """Resolve *awaitable* into a single ``callback(error, result)`` call.

    Errors raised by the callback itself are logged and not propagated.
    """

    try:
        result = await awaitable
    except asyncio.CancelledError:
        raise
    except Exception as exc:  # noqa: BLE001 - routed to the callback channel
        error: Optional[BaseException] = exc
        result = None
    else:
        error = None
    try:
        callback(error, result)
    except Exception:  # noqa: BLE001 - caller owns the callback
        _LOGGER.exception("deliver_callback_failed")
