"""Abstract interface for the upstream market-data provider."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class MarketDataUpstream(ABC):
    """Contract for market-data providers.

    Implementations return the provider's raw JSON payloads; reshaping and
    caching happen in MarketDataGateway. Every call must give up after the
    provider timeout with UpstreamTimeoutError, raise NotFoundError for an
    unknown coin and UpstreamError for any other provider failure.

    Lifecycle:
        upstream = create_market_upstream(settings)
        gateway = MarketDataGateway(upstream, cache, ...)
        # ... app runs ...
        await upstream.close()
    """

    @abstractmethod
    async def get_trending(self) -> dict[str, Any]:
        """Trending search results."""

    @abstractmethod
    async def get_markets(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        """Market rows for the coins and paging named in params."""

    @abstractmethod
    async def get_coin(self, coin_id: str) -> dict[str, Any]:
        """Full detail of a single coin, market data included."""

    @abstractmethod
    async def get_market_chart(
        self, coin_id: str, vs_currency: str, days: str, interval: str
    ) -> dict[str, Any]:
        """Price, market cap and volume history of a coin."""

    @abstractmethod
    async def search(self, query: str) -> dict[str, Any]:
        """Coins matching a free-text query."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections. Safe to call multiple times."""
