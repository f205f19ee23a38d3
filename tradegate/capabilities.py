"""Static capability table for the Cryptopia adapter.

Built once at import and never mutated; the engine reads it to decide whether
the adapter applies to a configured pair and how to batch history requests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from .types import InstrumentPair

__all__ = ["MinimalOrder", "Market", "Capabilities", "CAPABILITIES", "get_capabilities"]


@dataclass(frozen=True)
class MinimalOrder:
    amount: float
    unit: str


@dataclass(frozen=True)
class Market:
    currency: str
    asset: str
    minimal_order: MinimalOrder

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.currency, self.asset)


@dataclass(frozen=True)
class Capabilities:
    name: str
    slug: str
    currencies: Tuple[str, ...]
    assets: Tuple[str, ...]
    markets: Tuple[Market, ...]
    requires: Tuple[str, ...]
    tid: str
    tradable: bool
    fetch_timespan: int
    provides_history: str

    def supports(self, pair: InstrumentPair) -> bool:
        return any(
            market.asset == pair.asset and market.currency == pair.currency
            for market in self.markets
        )

    def as_dict(self) -> Dict[str, Any]:
        """Render the camelCase mapping the engine expects."""

        return {
            "name": self.name,
            "slug": self.slug,
            "currencies": list(self.currencies),
            "assets": list(self.assets),
            "markets": [
                {
                    "pair": list(market.pair),
                    "minimalOrder": {
                        "amount": market.minimal_order.amount,
                        "unit": market.minimal_order.unit,
                    },
                }
                for market in self.markets
            ],
            "requires": list(self.requires),
            "tid": self.tid,
            "tradable": self.tradable,
            "fetchTimespan": self.fetch_timespan,
            "providesHistory": self.provides_history,
        }


_ASSETS = ("ETN", "LINDA", "PRL", "WSX")
_MIN_ORDER = MinimalOrder(amount=0.00000001, unit="asset")

CAPABILITIES = Capabilities(
    name="Cryptopia",
    slug="cryptopia",
    currencies=("BTC",),
    assets=_ASSETS,
    markets=tuple(
        Market(currency="BTC", asset=asset, minimal_order=_MIN_ORDER) for asset in _ASSETS
    ),
    requires=("key", "secret"),
    # Trades are keyed by their ``date`` field; see Trade.synthetic_id.
    tid="date",
    tradable=True,
    fetch_timespan=60,
    provides_history="date",
)


def get_capabilities() -> Capabilities:
    return CAPABILITIES
