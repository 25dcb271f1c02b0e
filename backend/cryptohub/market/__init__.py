"""Market data subsystem.

Public API:
    ResponseCache          - Thread-safe TTL cache shielding the upstream API
    cache_key              - Deterministic key builder for cached requests
    CoinPrice              - Immutable price observation dataclass
    PriceBoard             - Latest observed price per coin
    MarketDataUpstream     - Abstract interface for market-data providers
    MarketDataGateway      - Cached, reshaped market reads
    create_market_upstream - Factory for the CoinGecko client
    create_market_router   - FastAPI router factory for /api/coins
    create_stream_router   - FastAPI router factory for the SSE price stream
"""

from .cache import ResponseCache, cache_key
from .factory import create_market_upstream
from .gateway import MarketDataGateway
from .interface import MarketDataUpstream
from .models import CoinPrice
from .prices import PriceBoard
from .router import create_market_router
from .stream import create_stream_router

__all__ = [
    "CoinPrice",
    "MarketDataGateway",
    "MarketDataUpstream",
    "PriceBoard",
    "ResponseCache",
    "cache_key",
    "create_market_router",
    "create_market_upstream",
    "create_stream_router",
]
