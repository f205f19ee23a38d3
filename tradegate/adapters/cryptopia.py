from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

# Importing ccxt lazily keeps the dependency optional for environments that
# only drive the adapter with injected clients. build_clients() surfaces a
# clear error if instantiation happens while the module is missing.
try:  # pragma: no cover - exercised via adapter usage
    import ccxt  # type: ignore
except Exception:  # pragma: no cover - fallback path
    ccxt = None  # type: ignore

from ..capabilities import Capabilities, get_capabilities
from ..config import TraderConfig
from ..types import (
    BalanceEntry,
    InstrumentPair,
    OrderDetail,
    Ticker,
    Trade,
    TradeOrder,
    is_fully_filled,
)
from .common import (
    RETRY_CRITICAL,
    ConfigurationError,
    RetryPolicy,
    classify_error,
    retry,
)

__all__ = ["CryptopiaTrader", "build_clients", "FEE_RATE"]

_LOGGER = logging.getLogger("tradegate.adapters.cryptopia")

FEE_RATE = 0.0002

# Keys ccxt adds to a balance snapshot next to the per-asset entries.
_BALANCE_META_KEYS = frozenset({"info", "free", "used", "total", "timestamp", "datetime"})

T = TypeVar("T")


def build_clients(config: TraderConfig) -> Tuple[Any, Any]:
    """Create the (public, private) ccxt exchange handles for *config*."""

    if ccxt is None:
        raise ConfigurationError("ccxt is not installed")
    exchange_cls = getattr(ccxt, config.exchange_id, None)
    if exchange_cls is None:
        raise ConfigurationError(f"ccxt has no exchange '{config.exchange_id}'")
    params: Dict[str, Any] = {"enableRateLimit": True}
    public = exchange_cls(dict(params))
    if config.key:
        params["apiKey"] = config.key
    if config.secret:
        params["secret"] = config.secret
    private = exchange_cls(params)
    if config.sandbox:
        for exchange in (public, private):
            if hasattr(exchange, "set_sandbox_mode"):
                exchange.set_sandbox_mode(True)
    return public, private


def _order_id(order: Mapping[str, Any] | str) -> str:
    if isinstance(order, Mapping):
        order_id = order.get("id")
    else:
        order_id = order
    if not order_id:
        raise ValueError("order id is required")
    return str(order_id)


class CryptopiaTrader:
    """Cryptopia trader exposing the engine's uniform adapter interface.

    Order operations (``buy``, ``sell``, ``check_order``, ``get_order``,
    ``cancel_order``) retry transient failures under ``policy``; each retry
    re-invokes the originating call with its original arguments. Reads
    (``get_portfolio``, ``get_ticker``, ``get_trades``) surface the first
    failure as a :class:`~tradegate.adapters.common.RemoteError`.

    The exchange clients are synchronous ccxt objects; calls run in a worker
    thread so backoff waits and requests never block the event loop.
    """

    name = "Cryptopia"

    def __init__(
        self,
        config: TraderConfig,
        *,
        public: Any = None,
        private: Any = None,
        policy: RetryPolicy = RETRY_CRITICAL,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.pair: InstrumentPair = config.pair
        self.post_only = config.post_only
        self.policy = policy
        self._sleeper = sleeper
        self._log = logger or _LOGGER
        if public is None or private is None:
            built_public, built_private = build_clients(config)
            public = public if public is not None else built_public
            private = private if private is not None else built_private
        self._public = public
        self._private = private

    async def __aenter__(self) -> "CryptopiaTrader":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        for client in (self._public, self._private):
            closer = getattr(client, "close", None)
            if callable(closer):
                await asyncio.to_thread(closer)

    @staticmethod
    def get_capabilities() -> Capabilities:
        return get_capabilities()

    # ------------------------------------------------------------------
    async def _call(self, method: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(method, *args)

    async def _read(self, label: str, method: Callable[..., T], *args: Any) -> T:
        try:
            return await self._call(method, *args)
        except Exception as exc:
            error = classify_error(exc)
            self._log.error(
                "read_failed op=%s pair=%s error=%s", label, self.pair.display, error
            )
            raise error

    async def _critical(self, label: str, method: Callable[..., T], *args: Any) -> T:
        async def attempt() -> T:
            return await self._call(method, *args)

        return await retry(
            attempt,
            policy=self.policy,
            sleeper=self._sleeper,
            label=label,
            logger=self._log,
        )

    def _require_credentials(self, label: str) -> None:
        if not self.config.has_credentials:
            raise ConfigurationError(f"{label} requires an API key and secret")

    def _order_params(self) -> Dict[str, Any]:
        return {"postOnly": True} if self.post_only else {}

    # ------------------------------------------------------------------
    async def get_portfolio(self) -> List[BalanceEntry]:
        self._require_credentials("get_portfolio")
        snapshot = await self._read("get_portfolio", self._private.fetch_balance)
        return [
            BalanceEntry(name=name, amount=entry.get("total"))
            for name, entry in snapshot.items()
            if name not in _BALANCE_META_KEYS and isinstance(entry, Mapping)
        ]

    async def get_fee(self) -> float:
        return FEE_RATE

    async def get_ticker(self) -> Ticker:
        ticker = await self._read("get_ticker", self._public.fetch_ticker, self.pair.market)
        return Ticker(bid=ticker.get("bid"), ask=ticker.get("ask"))

    async def get_trades(
        self,
        since: Optional[float] = None,
        order: TradeOrder | None = None,
        *,
        descending: Optional[bool] = None,
    ) -> List[Trade]:
        """Fetch recent public trades for the configured pair.

        ``order`` picks the chronological order of the result. ``descending``
        is the engine's legacy flag and keeps its historical meaning (see
        :meth:`TradeOrder.from_legacy_flag`); it wins over ``order``.
        """

        if descending is not None:
            order = TradeOrder.from_legacy_flag(descending)
        elif order is None:
            order = TradeOrder.DESCENDING
        since_ms = int(since * 1000) if since is not None else None
        raw = await self._read(
            "get_trades", self._public.fetch_trades, self.pair.market, since_ms
        )
        trades = [Trade.from_exchange(item) for item in raw]
        # The exchange returns oldest first.
        newest_first = order is TradeOrder.DESCENDING
        if newest_first:
            trades.reverse()
        return trades

    async def buy(self, amount: float, price: float) -> Dict[str, Any]:
        self._require_credentials("buy")
        order = await self._critical(
            "buy",
            self._private.create_limit_buy_order,
            self.pair.market,
            amount,
            price,
            self._order_params(),
        )
        self._log.info(
            "order_submitted side=buy pair=%s amount=%s price=%s id=%s",
            self.pair.display,
            amount,
            price,
            order.get("id"),
        )
        return order

    async def sell(self, amount: float, price: float) -> Dict[str, Any]:
        self._require_credentials("sell")
        order = await self._critical(
            "sell",
            self._private.create_limit_sell_order,
            self.pair.market,
            amount,
            price,
            self._order_params(),
        )
        self._log.info(
            "order_submitted side=sell pair=%s amount=%s price=%s id=%s",
            self.pair.display,
            amount,
            price,
            order.get("id"),
        )
        return order

    async def check_order(self, order: Mapping[str, Any] | str) -> bool:
        self._require_credentials("check_order")
        raw = await self._critical(
            "check_order", self._private.fetch_order, _order_id(order), self.pair.market
        )
        return is_fully_filled(raw)

    async def get_order(self, order: Mapping[str, Any] | str) -> OrderDetail:
        self._require_credentials("get_order")
        raw = await self._critical(
            "get_order", self._private.fetch_order, _order_id(order), self.pair.market
        )
        return OrderDetail.from_exchange(raw)

    async def cancel_order(self, order: Mapping[str, Any] | str) -> None:
        self._require_credentials("cancel_order")
        order_id = _order_id(order)
        await self._critical(
            "cancel_order", self._private.cancel_order, order_id, self.pair.market
        )
        self._log.info("order_cancelled pair=%s id=%s", self.pair.display, order_id)
