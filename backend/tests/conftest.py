"""Pytest configuration and fixtures."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from cryptohub.config import Settings
from cryptohub.errors import AuthenticationError
from cryptohub.identity import Identity
from cryptohub.main import create_app
from cryptohub.market import MarketDataUpstream
from cryptohub.storage import InMemoryDatastore


@pytest.fixture
def event_loop_policy():
    """Use the default event loop policy for all async tests."""
    import asyncio

    return asyncio.DefaultEventLoopPolicy()


class StaticTokenVerifier:
    """Stands in for TokenVerifier: fixed tokens map to fixed identities."""

    def __init__(self, identities):
        self._identities = identities

    async def verify(self, token):
        if not token:
            raise AuthenticationError("No token provided")
        identity = self._identities.get(token)
        if identity is None:
            raise AuthenticationError("Invalid token")
        return identity

    async def close(self):
        pass


@pytest.fixture
def alice():
    return Identity(subject="auth0|alice", email="alice@example.com", name="Alice")


@pytest.fixture
def bob():
    return Identity(subject="auth0|bob", email="bob@example.com", name="Bob")


@pytest.fixture
def datastore():
    return InMemoryDatastore()


@pytest.fixture
def verifier(alice, bob):
    return StaticTokenVerifier({"alice-token": alice, "bob-token": bob})


@pytest.fixture
def upstream():
    """Market upstream double; tests set return values per method."""
    return AsyncMock(spec=MarketDataUpstream)


@pytest.fixture
def settings():
    return Settings(retention_interval=3600.0)


@pytest.fixture
def app(settings, datastore, verifier, upstream):
    return create_app(settings, datastore=datastore, verifier=verifier, upstream=upstream)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
