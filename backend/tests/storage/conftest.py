"""Fixtures for storage tests: every contract test runs against both backends."""

import pytest

from cryptohub.storage import InMemoryDatastore
from cryptohub.storage.sql import SqlDatastore


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryDatastore()
        return
    store = SqlDatastore(f"sqlite:///{tmp_path / 'cryptohub.db'}")
    store.create_schema()
    yield store
    store._engine.dispose()
