"""Process-local datastore used when no database is configured."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from itertools import count
from threading import Lock

from .interface import Datastore
from .models import (
    ChatMessage,
    CoinRecord,
    MessageAuthor,
    RoomActivity,
    UserRecord,
    as_utc,
    utcnow,
)
from .seed_coins import SEED_COINS

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _MessageRow:
    id: str
    room_id: str
    user_id: str
    content: str
    created_at: datetime
    seq: int
    is_deleted: bool = False


class InMemoryDatastore(Datastore):
    """Dict-backed implementation of every storage contract.

    Creation timestamps never go backwards across insertions, and messages
    sharing a timestamp are ordered by insertion sequence. Nothing survives a
    restart.
    """

    def __init__(self, seed: bool = True) -> None:
        self._users: dict[str, UserRecord] = {}  # subject -> user
        self._users_by_id: dict[str, UserRecord] = {}
        self._coins: dict[str, CoinRecord] = {}
        self._snapshots: list[tuple[str, float, float | None, float | None, datetime]] = []
        self._messages: dict[str, _MessageRow] = {}
        self._seq = count()
        self._last_created: datetime | None = None
        self._lock = Lock()
        if seed:
            for coin in SEED_COINS:
                self._coins[coin.id] = coin

    # --- Users ---

    async def get_user_by_subject(self, subject: str) -> UserRecord | None:
        with self._lock:
            return self._users.get(subject)

    async def create_user(
        self,
        subject: str,
        email: str,
        username: str,
        avatar_url: str | None = None,
    ) -> UserRecord:
        with self._lock:
            existing = self._users.get(subject)
            if existing:
                return existing
            user = UserRecord(
                id=str(uuid.uuid4()),
                subject=subject,
                email=email,
                username=username,
                avatar_url=avatar_url,
            )
            self._users[subject] = user
            self._users_by_id[user.id] = user
            logger.info("Created user %s", user.id)
            return user

    # --- Coins ---

    async def coin_exists(self, coin_id: str) -> bool:
        with self._lock:
            return coin_id in self._coins

    async def get_coin(self, coin_id: str) -> CoinRecord | None:
        with self._lock:
            return self._coins.get(coin_id)

    async def upsert_coin(self, coin: CoinRecord) -> None:
        with self._lock:
            self._coins[coin.id] = replace(coin, last_updated=utcnow())

    async def record_snapshot(
        self,
        coin_id: str,
        price: float,
        market_cap: float | None = None,
        volume_24h: float | None = None,
    ) -> None:
        with self._lock:
            self._snapshots.append((coin_id, price, market_cap, volume_24h, utcnow()))

    def snapshot_count(self, coin_id: str) -> int:
        with self._lock:
            return sum(1 for snap in self._snapshots if snap[0] == coin_id)

    # --- Messages ---

    async def append_message(
        self,
        room_id: str,
        user_id: str,
        content: str,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        with self._lock:
            if created_at is None:
                created_at = utcnow()
                if self._last_created and created_at < self._last_created:
                    created_at = self._last_created
            else:
                created_at = as_utc(created_at)
            if self._last_created is None or created_at > self._last_created:
                self._last_created = created_at
            row = _MessageRow(
                id=str(uuid.uuid4()),
                room_id=room_id,
                user_id=user_id,
                content=content,
                created_at=created_at,
                seq=next(self._seq),
            )
            self._messages[row.id] = row
            return self._to_message(row)

    async def recent_messages(
        self,
        room_id: str,
        limit: int,
        offset: int = 0,
        before: datetime | None = None,
    ) -> list[ChatMessage]:
        if before is not None:
            before = as_utc(before)
        with self._lock:
            rows = [
                row
                for row in self._room_rows(room_id)
                if not row.is_deleted and (before is None or row.created_at < before)
            ]
            return [self._to_message(row) for row in rows[offset : offset + limit]]

    async def get_message(self, message_id: str) -> ChatMessage | None:
        with self._lock:
            row = self._messages.get(message_id)
            return self._to_message(row) if row else None

    async def delete_message(self, message_id: str) -> bool:
        with self._lock:
            row = self._messages.get(message_id)
            if row is None:
                return False
            row.is_deleted = True
            return True

    async def prune_rooms(self, keep: int) -> int:
        with self._lock:
            removed = 0
            for room_id in {row.room_id for row in self._messages.values()}:
                rows = self._room_rows(room_id)
                live = [row for row in rows if not row.is_deleted]
                survivors = {row.id for row in live[:keep]}
                for row in rows:
                    if row.id not in survivors:
                        del self._messages[row.id]
                        removed += 1
            return removed

    async def active_rooms(self, since: datetime, limit: int) -> list[RoomActivity]:
        since = as_utc(since)
        with self._lock:
            stats: dict[str, RoomActivity] = {}
            for row in self._messages.values():
                if row.is_deleted or row.created_at < since:
                    continue
                current = stats.get(row.room_id)
                if current is None:
                    stats[row.room_id] = RoomActivity(row.room_id, row.created_at, 1)
                else:
                    stats[row.room_id] = RoomActivity(
                        row.room_id,
                        max(current.last_activity, row.created_at),
                        current.message_count + 1,
                    )
            ranked = sorted(stats.values(), key=lambda a: a.last_activity, reverse=True)
            return ranked[:limit]

    # --- Internal ---

    def _room_rows(self, room_id: str) -> list[_MessageRow]:
        """All rows of a room, newest first. Caller holds the lock."""
        rows = [row for row in self._messages.values() if row.room_id == room_id]
        rows.sort(key=lambda row: (row.created_at, row.seq), reverse=True)
        return rows

    def _to_message(self, row: _MessageRow) -> ChatMessage:
        user = self._users_by_id.get(row.user_id)
        author = MessageAuthor(
            id=row.user_id,
            name=user.username if user else "Unknown",
            email=user.email if user else "",
        )
        return ChatMessage(
            id=row.id,
            room_id=row.room_id,
            content=row.content,
            created_at=row.created_at,
            author=author,
            is_deleted=row.is_deleted,
        )
