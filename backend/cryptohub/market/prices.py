"""Latest observed price per coin, shared by the gateway and the price stream."""

from __future__ import annotations

import time
from collections.abc import Mapping
from threading import Lock

from .models import PRICE_PLACES, CoinPrice


class PriceBoard:
    """Thread-safe map of coin id to its most recent CoinPrice.

    The gateway writes whatever prices it fetches; the SSE stream polls
    `version`, which moves once per write batch, to know when to resend.
    """

    def __init__(self) -> None:
        self._prices: dict[str, CoinPrice] = {}
        self._version = 0
        self._lock = Lock()

    def update(self, coin_id: str, price: float, timestamp: float | None = None) -> CoinPrice:
        """Record one price. A coin's first observation is flat."""
        with self._lock:
            observed = self._observe(coin_id, price, timestamp or time.time())
            self._version += 1
            return observed

    def update_many(self, prices: Mapping[str, float], timestamp: float | None = None) -> int:
        """Record several prices as a single board change. Returns how many were recorded."""
        if not prices:
            return 0
        ts = timestamp or time.time()
        with self._lock:
            for coin_id, price in prices.items():
                self._observe(coin_id, price, ts)
            self._version += 1
        return len(prices)

    def get(self, coin_id: str) -> CoinPrice | None:
        with self._lock:
            return self._prices.get(coin_id)

    def get_all(self) -> dict[str, CoinPrice]:
        with self._lock:
            return dict(self._prices)

    @property
    def version(self) -> int:
        return self._version

    def _observe(self, coin_id: str, price: float, ts: float) -> CoinPrice:
        price = round(price, PRICE_PLACES)
        last = self._prices.get(coin_id)
        observed = CoinPrice(
            coin_id=coin_id,
            price=price,
            previous_price=last.price if last else price,
            timestamp=ts,
        )
        self._prices[coin_id] = observed
        return observed

    def __len__(self) -> int:
        with self._lock:
            return len(self._prices)

    def __contains__(self, coin_id: str) -> bool:
        with self._lock:
            return coin_id in self._prices
