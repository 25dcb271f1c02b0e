"""REST routes for market data."""

from __future__ import annotations

from fastapi import APIRouter, Query

from .gateway import DEFAULT_IDS, DEFAULT_INTERVAL, DEFAULT_ORDER, DEFAULT_PRICE_CHANGE, MarketDataGateway


def create_market_router(gateway: MarketDataGateway) -> APIRouter:
    """Create the /api/coins router bound to a gateway."""
    router = APIRouter(prefix="/api/coins", tags=["coins"])

    @router.get("/trending")
    async def trending() -> dict:
        return await gateway.trending()

    @router.get("/market")
    async def market(
        ids: str = DEFAULT_IDS,
        vs_currency: str = "usd",
        order: str = DEFAULT_ORDER,
        per_page: int = Query(10, ge=1, le=250),
        page: int = Query(1, ge=1),
        sparkline: bool = True,
        price_change_percentage: str = DEFAULT_PRICE_CHANGE,
    ) -> dict:
        return await gateway.markets(
            ids=ids,
            vs_currency=vs_currency,
            order=order,
            per_page=per_page,
            page=page,
            sparkline=sparkline,
            price_change_percentage=price_change_percentage,
        )

    @router.get("/search")
    async def search(query: str = "") -> dict:
        return await gateway.search(query)

    @router.get("/{coin_id}/market")
    async def coin_market(
        coin_id: str,
        vs_currency: str = "usd",
        days: str = "7",
        interval: str = DEFAULT_INTERVAL,
    ) -> dict:
        return await gateway.coin_detail(coin_id, vs_currency=vs_currency, days=days, interval=interval)

    return router
