"""Abstract interfaces for the durable store.

The chat and market subsystems only talk to these contracts. Backends:

    InMemoryDatastore  - process-local, used when DATABASE_URL is unset
    SqlDatastore       - SQLAlchemy over any supported database

All methods are coroutines so a backend can wait on network I/O without
blocking other sessions. Backends raise StorageError on driver failures.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from .models import ChatMessage, CoinRecord, RoomActivity, UserRecord


class UserStore(ABC):
    @abstractmethod
    async def get_user_by_subject(self, subject: str) -> UserRecord | None:
        """Look up a user by identity-provider subject, or None."""

    @abstractmethod
    async def create_user(
        self,
        subject: str,
        email: str,
        username: str,
        avatar_url: str | None = None,
    ) -> UserRecord:
        """Create the user for `subject`.

        Returns the existing record instead if another caller created it first.
        """


class CoinStore(ABC):
    @abstractmethod
    async def coin_exists(self, coin_id: str) -> bool:
        """True when `coin_id` names a known coin."""

    @abstractmethod
    async def get_coin(self, coin_id: str) -> CoinRecord | None:
        """Fetch a coin row, or None."""

    @abstractmethod
    async def upsert_coin(self, coin: CoinRecord) -> None:
        """Insert or replace the row for coin.id."""

    @abstractmethod
    async def record_snapshot(
        self,
        coin_id: str,
        price: float,
        market_cap: float | None = None,
        volume_24h: float | None = None,
    ) -> None:
        """Append a point-in-time price observation for a coin."""


class MessageStore(ABC):
    @abstractmethod
    async def append_message(
        self,
        room_id: str,
        user_id: str,
        content: str,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        """Persist a message and return it joined with its author.

        Creation time defaults to now.
        """

    @abstractmethod
    async def recent_messages(
        self,
        room_id: str,
        limit: int,
        offset: int = 0,
        before: datetime | None = None,
    ) -> list[ChatMessage]:
        """Non-deleted messages of a room, newest first.

        `before` keeps only messages created strictly earlier.
        """

    @abstractmethod
    async def get_message(self, message_id: str) -> ChatMessage | None:
        """Fetch a message by id, deleted or not."""

    @abstractmethod
    async def delete_message(self, message_id: str) -> bool:
        """Soft-delete a message. Returns False when it does not exist."""

    @abstractmethod
    async def prune_rooms(self, keep: int) -> int:
        """Keep the `keep` newest non-deleted messages of every room.

        Every other row of the room is removed, soft-deleted rows included.
        Returns the number of rows removed.
        """

    @abstractmethod
    async def active_rooms(self, since: datetime, limit: int) -> list[RoomActivity]:
        """Rooms with messages created at or after `since`, most recent first."""


class Datastore(UserStore, CoinStore, MessageStore, ABC):
    """A backend implementing every storage contract."""

    async def close(self) -> None:
        """Release connections. Safe to call more than once."""
