"""Price observations published on the PriceBoard."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

# Crypto prices go well below a cent, so keep satoshi-level precision
PRICE_PLACES = 8


@dataclass(frozen=True, slots=True)
class CoinPrice:
    """A coin's latest observed price next to the one observed before it."""

    coin_id: str
    price: float
    previous_price: float
    timestamp: float = field(default_factory=time.time)  # Unix seconds of the observation

    @property
    def change(self) -> float:
        return round(self.price - self.previous_price, PRICE_PLACES)

    @property
    def change_percent(self) -> float:
        """Move relative to the previous price; 0.0 when there is no base to compare to."""
        if not self.previous_price:
            return 0.0
        return round(self.change / self.previous_price * 100, 4)

    @property
    def direction(self) -> str:
        if self.change > 0:
            return "up"
        if self.change < 0:
            return "down"
        return "flat"

    def to_dict(self) -> dict:
        return {
            "coinId": self.coin_id,
            "price": self.price,
            "previousPrice": self.previous_price,
            "change": self.change,
            "changePercent": self.change_percent,
            "direction": self.direction,
            "timestamp": self.timestamp,
        }
