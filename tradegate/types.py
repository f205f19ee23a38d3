"""Value types shared by the trader adapters.

The adapter never mutates exchange state locally; everything here is a
read-only snapshot built from what the exchange client returned.
"""
from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

PAIR_DISPLAY_SEPARATOR = "-"
PAIR_MARKET_SEPARATOR = "/"


@dataclass(frozen=True)
class InstrumentPair:
    """(asset, currency) combination an order or market query applies to."""

    asset: str
    currency: str

    def __post_init__(self) -> None:
        asset = (self.asset or "").strip().upper()
        currency = (self.currency or "").strip().upper()
        if not asset or not currency:
            raise ValueError("InstrumentPair requires both asset and currency")
        object.__setattr__(self, "asset", asset)
        object.__setattr__(self, "currency", currency)

    @property
    def display(self) -> str:
        """Configuration/logging form, e.g. ``ETN-BTC``."""

        return f"{self.asset}{PAIR_DISPLAY_SEPARATOR}{self.currency}"

    @property
    def market(self) -> str:
        """Exchange client form, e.g. ``ETN/BTC``."""

        return f"{self.asset}{PAIR_MARKET_SEPARATOR}{self.currency}"

    @classmethod
    def parse(cls, text: str) -> "InstrumentPair":
        for separator in (PAIR_DISPLAY_SEPARATOR, PAIR_MARKET_SEPARATOR):
            asset, found, currency = text.partition(separator)
            if found:
                return cls(asset=asset, currency=currency)
        raise ValueError(f"unrecognised pair '{text}'")

    def __str__(self) -> str:
        return self.display


class TradeOrder(str, Enum):
    """Chronological order of a trade-history result."""

    ASCENDING = "ascending"
    DESCENDING = "descending"

    @classmethod
    def from_legacy_flag(cls, descending: bool) -> "TradeOrder":
        """Map the engine's historical ``descending`` flag.

        The flag has always been inverted: ``True`` asks for the exchange's
        native oldest-first order and ``False`` for newest-first.
        """

        return cls.ASCENDING if descending else cls.DESCENDING


@dataclass(frozen=True)
class BalanceEntry:
    name: str
    amount: float


@dataclass(frozen=True)
class Ticker:
    bid: Optional[float]
    ask: Optional[float]


@dataclass(frozen=True)
class Trade:
    """Public trade normalised for the engine (``date`` in epoch seconds)."""

    date: float
    price: float
    amount: float
    tid: str

    @staticmethod
    def synthetic_id(timestamp_ms: Any, price: Any, amount: Any) -> str:
        # The exchange has no stable trade id; two trades sharing all three
        # fields collide.
        return f"{timestamp_ms}:{price}:{amount}"

    @classmethod
    def from_exchange(cls, raw: Mapping[str, Any]) -> "Trade":
        timestamp = raw["timestamp"]
        price = raw["price"]
        amount = raw["amount"]
        return cls(
            date=timestamp / 1000,
            price=price,
            amount=amount,
            tid=cls.synthetic_id(timestamp, price, amount),
        )


@dataclass(frozen=True)
class OrderDetail:
    price: Optional[float]
    amount: Optional[float]
    date: Optional[_dt.datetime]

    @classmethod
    def from_exchange(cls, raw: Mapping[str, Any]) -> "OrderDetail":
        timestamp = raw.get("timestamp")
        date = (
            _dt.datetime.fromtimestamp(timestamp / 1000, tz=_dt.timezone.utc)
            if timestamp is not None
            else None
        )
        return cls(price=raw.get("price"), amount=raw.get("amount"), date=date)


def is_fully_filled(raw: Mapping[str, Any]) -> bool:
    """An order counts as filled only when closed with nothing remaining."""

    return raw.get("status") == "closed" and raw.get("remaining") == 0


__all__ = [
    "InstrumentPair",
    "TradeOrder",
    "BalanceEntry",
    "Ticker",
    "Trade",
    "OrderDetail",
    "is_fully_filled",
    "PAIR_DISPLAY_SEPARATOR",
    "PAIR_MARKET_SEPARATOR",
]
