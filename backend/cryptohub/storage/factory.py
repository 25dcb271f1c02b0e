"""Factory for creating the datastore."""

from __future__ import annotations

import logging

from ..config import Settings
from .interface import Datastore

logger = logging.getLogger(__name__)


def create_datastore(settings: Settings) -> Datastore:
    """Create the datastore selected by the settings.

    - DATABASE_URL set → SqlDatastore (tables created and seeded if missing)
    - Otherwise → InMemoryDatastore (lost on restart)
    """
    if settings.database_url:
        from .sql import SqlDatastore

        logger.info("Datastore: SQL database")
        store = SqlDatastore(settings.database_url)
        store.create_schema()
        return store
    else:
        from .memory import InMemoryDatastore

        logger.info("Datastore: in-memory (data is lost on restart)")
        return InMemoryDatastore()
