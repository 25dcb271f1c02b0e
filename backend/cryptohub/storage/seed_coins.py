"""Coins known to every fresh datastore, so their chat rooms accept messages."""

from .models import CoinRecord

SEED_COINS: tuple[CoinRecord, ...] = (
    CoinRecord(id="bitcoin", name="Bitcoin", symbol="BTC", current_price=45000.00, market_cap_rank=1),
    CoinRecord(id="ethereum", name="Ethereum", symbol="ETH", current_price=3000.00, market_cap_rank=2),
    CoinRecord(id="cardano", name="Cardano", symbol="ADA", current_price=1.20, market_cap_rank=3),
    CoinRecord(id="polkadot", name="Polkadot", symbol="DOT", current_price=25.00, market_cap_rank=4),
    CoinRecord(id="chainlink", name="Chainlink", symbol="LINK", current_price=28.00, market_cap_rank=5),
)
