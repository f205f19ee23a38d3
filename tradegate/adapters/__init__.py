from __future__ import annotations

"""Exchange trader adapters.

Each adapter wraps one venue's ccxt client behind the engine's uniform trader
interface and embeds the retry/backoff policy for order operations, so the
engine can stay unaware of transient network failures.
"""

from .common import (
    AdapterError,
    ConfigurationError,
    FatalAdapterError,
    RemoteError,
    RETRY_CRITICAL,
    RETRY_FOREVER,
    RetryPolicy,
    RetryableError,
    classify_error,
    deliver,
    is_recoverable,
    retry,
)
from .cryptopia import FEE_RATE, CryptopiaTrader, build_clients

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "FatalAdapterError",
    "RemoteError",
    "RETRY_CRITICAL",
    "RETRY_FOREVER",
    "RetryPolicy",
    "RetryableError",
    "classify_error",
    "deliver",
    "is_recoverable",
    "retry",
    "FEE_RATE",
    "CryptopiaTrader",
    "build_clients",
]
