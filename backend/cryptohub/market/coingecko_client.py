"""CoinGecko API client for real market data."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..config import COINGECKO_BASE_URL
from ..errors import NotFoundError, UpstreamError, UpstreamTimeoutError
from .interface import MarketDataUpstream

logger = logging.getLogger(__name__)


class CoinGeckoClient(MarketDataUpstream):
    """MarketDataUpstream backed by the CoinGecko v3 REST API.

    Rate limits are tight on the free and demo tiers (a few dozen calls per
    minute), which is why every gateway read goes through the ResponseCache.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = COINGECKO_BASE_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_key:
            headers["x-cg-demo-api-key"] = api_key
        self._client = httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def get_trending(self) -> dict[str, Any]:
        return await self._get("/search/trending")

    async def get_markets(self, params: dict[str, Any]) -> list[dict[str, Any]]:
        return await self._get("/coins/markets", params)

    async def get_coin(self, coin_id: str) -> dict[str, Any]:
        return await self._get(
            f"/coins/{coin_id}",
            {
                "localization": "false",
                "tickers": "false",
                "market_data": "true",
                "community_data": "false",
                "developer_data": "false",
                "sparkline": "true",
            },
        )

    async def get_market_chart(
        self, coin_id: str, vs_currency: str, days: str, interval: str
    ) -> dict[str, Any]:
        return await self._get(
            f"/coins/{coin_id}/market_chart",
            {"vs_currency": vs_currency, "days": days, "interval": interval},
        )

    async def search(self, query: str) -> dict[str, Any]:
        return await self._get("/search", {"query": query})

    async def close(self) -> None:
        await self._client.aclose()

    # --- Internal ---

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET a JSON payload, mapping transport failures to the error taxonomy."""
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error("CoinGecko request timed out: %s", path)
            raise UpstreamTimeoutError("Market data provider timed out") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise NotFoundError("Coin not found") from e
            # Common failures: 401 (bad key), 429 (rate limit), 5xx.
            logger.error("CoinGecko request failed: %s -> HTTP %d", path, status)
            raise UpstreamError("Market data provider request failed") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("CoinGecko request failed: %s: %s", path, e)
            raise UpstreamError("Market data provider request failed") from e
