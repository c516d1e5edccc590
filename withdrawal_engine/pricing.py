"""
Withdrawal Engine - Pricing.

============================================================
PURPOSE
============================================================
Fiat valuation of withdrawn amounts.

The executor and the status endpoint take a PriceQuote from
an injected oracle. The default oracle returns a static
price; it is a placeholder, not a market feed.

============================================================
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

from .config import PricingConfig


logger = logging.getLogger(__name__)


CENT = Decimal("0.01")


def to_fiat(amount: Decimal, price: Decimal) -> Decimal:
    """Value an ETH amount, rounded to cents."""
    return (amount * price).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class PriceQuote:
    """A time-stamped price."""

    price: Decimal
    """Fiat price of one ETH."""

    currency: str = "USD"

    source: str = "static"
    """Where the price came from."""

    as_of: datetime = field(default_factory=datetime.utcnow)

    def value_of(self, amount: Decimal) -> Decimal:
        return to_fiat(amount, self.price)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "price": f"{self.price:.2f}",
            "currency": self.currency,
            "source": self.source,
            "asOf": self.as_of.isoformat(),
        }


class PriceOracle(ABC):
    """Source of ETH price quotes."""

    @abstractmethod
    async def get_quote(self) -> PriceQuote:
        pass


class StaticPriceOracle(PriceOracle):
    """Returns a fixed configured price, quoted as of construction."""

    def __init__(self, config: Optional[PricingConfig] = None):
        config = config or PricingConfig()
        self._quote = PriceQuote(
            price=config.eth_price,
            currency=config.currency,
            source="static",
        )

    async def get_quote(self) -> PriceQuote:
        return self._quote
