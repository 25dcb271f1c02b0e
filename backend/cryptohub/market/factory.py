"""Factory for creating the market data upstream."""

from __future__ import annotations

import logging

from ..config import Settings
from .coingecko_client import CoinGeckoClient
from .interface import MarketDataUpstream

logger = logging.getLogger(__name__)


def create_market_upstream(settings: Settings) -> MarketDataUpstream:
    """Create the CoinGecko client described by the settings.

    - COINGECKO_API_KEY set → requests carry the demo API key header
    - Otherwise → anonymous public API (lowest rate limit)
    """
    if settings.coingecko_api_key:
        logger.info("Market data upstream: CoinGecko (API key)")
    else:
        logger.info("Market data upstream: CoinGecko (anonymous)")
    return CoinGeckoClient(
        api_key=settings.coingecko_api_key,
        base_url=settings.coingecko_base_url,
        timeout=settings.upstream_timeout,
    )
