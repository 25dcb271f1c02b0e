"""Access-token verification against the identity provider's JWKS.

Tokens are RS256 JWTs issued by https://<domain>/. Signing keys are fetched
from the provider's key set once, cached, and refreshed when a token names
a key id that is not in the cache (key rotation). Refreshes happen at
most once per `refresh_interval` seconds.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from jose import JWTError, jwt

from ..errors import AuthenticationError, UpstreamError, UpstreamTimeoutError
from .models import Identity

logger = logging.getLogger(__name__)

DEFAULT_ALGORITHMS: tuple[str, ...] = ("RS256",)
DEFAULT_REFRESH_INTERVAL = 60.0


class TokenVerifier:
    """Verifies bearer tokens and turns their claims into an Identity."""

    def __init__(
        self,
        domain: str,
        audience: str = "",
        *,
        timeout: float = 30.0,
        algorithms: tuple[str, ...] = DEFAULT_ALGORITHMS,
        refresh_interval: float = DEFAULT_REFRESH_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        domain = domain.strip().removeprefix("https://").rstrip("/")
        self._issuer = f"https://{domain}/" if domain else ""
        self._jwks_url = f"https://{domain}/.well-known/jwks.json"
        self._audience = audience
        self._algorithms = algorithms
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)
        self._keys: dict[str, dict[str, Any]] | None = None
        self._fetched_at = 0.0
        self._refresh_interval = refresh_interval
        self._clock = clock
        self._lock = asyncio.Lock()

    async def verify(self, token: str | None) -> Identity:
        """Return the Identity for a valid token.

        Raises AuthenticationError for a missing, malformed, expired or
        foreign token, and UpstreamTimeoutError when the key set cannot be
        fetched in time.
        """
        if not token:
            raise AuthenticationError("No token provided")
        if not self._issuer:
            raise AuthenticationError("Authentication is not configured")

        try:
            header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise AuthenticationError("Invalid token") from e
        if header.get("alg") not in self._algorithms:
            raise AuthenticationError("Invalid token")

        key = await self._signing_key(header.get("kid"))
        try:
            claims = jwt.decode(
                token,
                key,
                algorithms=list(self._algorithms),
                audience=self._audience or None,
                issuer=self._issuer,
                options={"verify_aud": bool(self._audience)},
            )
        except JWTError as e:
            logger.warning("JWT verification failed: %s", e)
            raise AuthenticationError("Invalid token") from e

        subject = claims.get("sub")
        if not subject:
            raise AuthenticationError("Invalid token payload")
        return Identity(
            subject=subject,
            email=claims.get("email") or "",
            name=claims.get("name") or "",
            picture=claims.get("picture"),
        )

    async def close(self) -> None:
        await self._client.aclose()

    # --- Internal ---

    async def _signing_key(self, kid: str | None) -> dict[str, Any]:
        keys = await self._load_keys()
        if kid not in keys:
            keys = await self._load_keys(refresh=True)
        if kid not in keys:
            logger.warning("JWT names unknown signing key %r", kid)
            raise AuthenticationError("Invalid token")
        return keys[kid]

    async def _load_keys(self, refresh: bool = False) -> dict[str, dict[str, Any]]:
        async with self._lock:
            if self._keys is None or (refresh and self._refresh_due()):
                self._keys = await self._fetch_keys()
                self._fetched_at = self._clock()
            return self._keys

    def _refresh_due(self) -> bool:
        return self._clock() - self._fetched_at >= self._refresh_interval

    async def _fetch_keys(self) -> dict[str, dict[str, Any]]:
        try:
            response = await self._client.get(self._jwks_url)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            logger.error("Timed out fetching JWKS from %s", self._jwks_url)
            raise UpstreamTimeoutError("Identity provider timed out") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Failed to fetch JWKS from %s: %s", self._jwks_url, e)
            raise UpstreamError("Failed to fetch signing keys") from e

        keys = {key["kid"]: key for key in payload.get("keys", []) if "kid" in key}
        logger.info("Loaded %d signing keys", len(keys))
        return keys
