"""Market-Data Gateway: cached, reshaped reads from the upstream provider."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import StorageError, ValidationError
from ..storage.interface import CoinStore
from ..storage.models import CoinRecord, isoformat, utcnow
from .cache import ResponseCache, cache_key
from .interface import MarketDataUpstream
from .prices import PriceBoard

logger = logging.getLogger(__name__)

# Seconds each payload stays fresh; also reported to clients as cacheExpiry
TRENDING_TTL = 300
MARKET_TTL = 60
DETAIL_TTL = 300
SEARCH_TTL = 600

DEFAULT_IDS = "bitcoin,ethereum,cardano,polkadot,chainlink"
DEFAULT_ORDER = "market_cap_desc"
DEFAULT_PRICE_CHANGE = "24h"
DEFAULT_INTERVAL = "daily"
SEARCH_RESULTS = 10

MARKET_FIELDS = (
    "id",
    "symbol",
    "name",
    "image",
    "current_price",
    "market_cap",
    "market_cap_rank",
    "fully_diluted_valuation",
    "total_volume",
    "high_24h",
    "low_24h",
    "price_change_24h",
    "price_change_percentage_24h",
    "market_cap_change_24h",
    "market_cap_change_percentage_24h",
    "circulating_supply",
    "total_supply",
    "max_supply",
    "ath",
    "ath_change_percentage",
    "ath_date",
    "atl",
    "atl_change_percentage",
    "atl_date",
    "roi",
    "last_updated",
    "sparkline_in_7d",
)

# market_data fields keyed by target currency
PER_CURRENCY_FIELDS = (
    "current_price",
    "market_cap",
    "fully_diluted_valuation",
    "total_volume",
    "high_24h",
    "low_24h",
    "ath",
    "ath_change_percentage",
    "ath_date",
    "atl",
    "atl_change_percentage",
    "atl_date",
)

PLAIN_MARKET_FIELDS = (
    "price_change_24h",
    "price_change_percentage_24h",
    "market_cap_change_24h",
    "market_cap_change_percentage_24h",
    "circulating_supply",
    "total_supply",
    "max_supply",
)


class MarketDataGateway:
    """Serves market payloads, consulting the ResponseCache before the upstream.

    Each payload carries `lastUpdated` (ISO timestamp of the upstream fetch)
    and `cacheExpiry` (seconds) so clients can pace their polling. Observed
    prices are published to the PriceBoard, and coin details are written back
    to the CoinStore on a best-effort basis.
    """

    def __init__(
        self,
        upstream: MarketDataUpstream,
        cache: ResponseCache,
        coins: CoinStore | None = None,
        board: PriceBoard | None = None,
    ) -> None:
        self._upstream = upstream
        self._cache = cache
        self._coins = coins
        self._board = board

    async def trending(self) -> dict[str, Any]:
        key = "trending_coins"
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        payload = await self._upstream.get_trending()
        coins = [_trending_coin(entry.get("item", {})) for entry in payload.get("coins", [])]
        result = {"coins": coins, "lastUpdated": isoformat(utcnow()), "cacheExpiry": TRENDING_TTL}
        self._cache.set(key, result, TRENDING_TTL)
        return result

    async def markets(
        self,
        ids: str = DEFAULT_IDS,
        vs_currency: str = "usd",
        order: str = DEFAULT_ORDER,
        per_page: int = 10,
        page: int = 1,
        sparkline: bool = True,
        price_change_percentage: str = DEFAULT_PRICE_CHANGE,
    ) -> dict[str, Any]:
        key = cache_key(
            "market",
            ids,
            vs_currency,
            page,
            per_page,
            order=order if order != DEFAULT_ORDER else None,
            sparkline=None if sparkline else "false",
            pcp=price_change_percentage if price_change_percentage != DEFAULT_PRICE_CHANGE else None,
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        rows = await self._upstream.get_markets(
            {
                "ids": ids,
                "vs_currency": vs_currency,
                "order": order,
                "per_page": per_page,
                "page": page,
                "sparkline": "true" if sparkline else "false",
                "price_change_percentage": price_change_percentage,
            }
        )
        coins = [{name: row.get(name) for name in MARKET_FIELDS} for row in rows]
        if self._board is not None:
            self._board.update_many(
                {
                    coin["id"]: float(coin["current_price"])
                    for coin in coins
                    if coin.get("id") and isinstance(coin.get("current_price"), (int, float))
                }
            )

        result = {"coins": coins, "lastUpdated": isoformat(utcnow()), "cacheExpiry": MARKET_TTL}
        self._cache.set(key, result, MARKET_TTL)
        return result

    async def coin_detail(
        self,
        coin_id: str,
        vs_currency: str = "usd",
        days: str = "7",
        interval: str = DEFAULT_INTERVAL,
    ) -> dict[str, Any]:
        key = cache_key(
            "coin",
            coin_id,
            vs_currency,
            days,
            interval=interval if interval != DEFAULT_INTERVAL else None,
        )
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        coin, history = await asyncio.gather(
            self._upstream.get_coin(coin_id),
            self._upstream.get_market_chart(coin_id, vs_currency, days, interval),
            return_exceptions=True,
        )
        for outcome in (coin, history):
            if isinstance(outcome, BaseException):
                raise outcome
        market = coin.get("market_data") or {}
        image = coin.get("image") or {}
        description = coin.get("description") or {}

        result: dict[str, Any] = {
            "id": coin.get("id"),
            "symbol": coin.get("symbol"),
            "name": coin.get("name"),
            "image": image,
            "description": description.get("en", "") if isinstance(description, dict) else "",
            "market_cap_rank": coin.get("market_cap_rank"),
        }
        for name in PER_CURRENCY_FIELDS:
            result[name] = _in_currency(market, name, vs_currency)
        for name in PLAIN_MARKET_FIELDS:
            result[name] = market.get(name)
        result.update(
            {
                "price_history": history.get("prices", []),
                "market_cap_history": history.get("market_caps", []),
                "volume_history": history.get("total_volumes", []),
                "lastUpdated": isoformat(utcnow()),
                "cacheExpiry": DETAIL_TTL,
            }
        )
        self._cache.set(key, result, DETAIL_TTL)

        self._publish_price(result["id"], result["current_price"])
        await self._record_observation(result, image)
        return result

    async def search(self, query: str) -> dict[str, Any]:
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required")

        key = cache_key("search", query.lower())
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        payload = await self._upstream.search(query)
        coins = [
            {
                "id": coin.get("id"),
                "name": coin.get("name"),
                "symbol": coin.get("symbol"),
                "market_cap_rank": coin.get("market_cap_rank"),
                "thumb": coin.get("thumb"),
                "large": coin.get("large"),
            }
            for coin in payload.get("coins", [])[:SEARCH_RESULTS]
        ]
        result = {"coins": coins, "lastUpdated": isoformat(utcnow()), "cacheExpiry": SEARCH_TTL}
        self._cache.set(key, result, SEARCH_TTL)
        return result

    # --- Internal ---

    def _publish_price(self, coin_id: str | None, price: Any) -> None:
        if self._board is None or not coin_id or not isinstance(price, (int, float)):
            return
        self._board.update(coin_id, float(price))

    async def _record_observation(self, detail: dict[str, Any], image: dict[str, Any]) -> None:
        """Write the observed coin state back to storage. Failures are only logged."""
        if self._coins is None or not detail.get("id"):
            return
        record = CoinRecord(
            id=detail["id"],
            name=detail.get("name") or detail["id"],
            symbol=detail.get("symbol") or "",
            image_url=image.get("large") or image.get("small") or image.get("thumb"),
            current_price=detail.get("current_price"),
            market_cap=detail.get("market_cap"),
            price_change_24h=detail.get("price_change_percentage_24h"),
            market_cap_rank=detail.get("market_cap_rank"),
        )
        try:
            await self._coins.upsert_coin(record)
            if record.current_price is not None:
                await self._coins.record_snapshot(
                    record.id,
                    record.current_price,
                    market_cap=record.market_cap,
                    volume_24h=detail.get("total_volume"),
                )
        except StorageError as e:
            logger.error("Failed to record coin %s: %s", record.id, e)


def _trending_coin(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": item.get("id"),
        "name": item.get("name"),
        "symbol": item.get("symbol"),
        "market_cap_rank": item.get("market_cap_rank"),
        "thumb": item.get("thumb"),
        "small": item.get("small"),
        "large": item.get("large"),
        "price_btc": item.get("price_btc"),
    }


def _in_currency(market: dict[str, Any], name: str, vs_currency: str) -> Any:
    values = market.get(name)
    if isinstance(values, dict):
        return values.get(vs_currency)
    return None
