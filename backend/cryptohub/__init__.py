"""CryptoHub backend: market data proxy, per-coin chat rooms and user storage."""
