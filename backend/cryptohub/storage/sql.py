"""SQLAlchemy-backed datastore.

SQLAlchemy sessions are synchronous, so every operation runs in a worker
thread via asyncio.to_thread to keep the event loop free for other sessions.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import create_engine, delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import StorageError
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
from .tables import Base, CoinRow, MessageRow, SnapshotRow, UserRow

logger = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    """Attach UTC to naive values read back from backends without timezone support."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlDatastore(Datastore):
    """Datastore over any database SQLAlchemy can reach (PostgreSQL, SQLite, ...)."""

    def __init__(self, url: str, echo: bool = False) -> None:
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_pre_ping"] = True
        self._engine = create_engine(url, **kwargs)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)

    def create_schema(self, seed: bool = True) -> None:
        """Create missing tables and, optionally, the seed coins."""
        try:
            Base.metadata.create_all(self._engine)
        except SQLAlchemyError as e:
            logger.error("Database error while trying to create schema: %s", e)
            raise StorageError("Failed to create schema") from e
        if seed:
            with self._session("seed coins") as session:
                for coin in SEED_COINS:
                    if session.get(CoinRow, coin.id) is None:
                        session.add(_coin_row(coin))
        logger.info("Database schema ready")

    async def close(self) -> None:
        self._engine.dispose()

    # --- Users ---

    async def get_user_by_subject(self, subject: str) -> UserRecord | None:
        return await asyncio.to_thread(self._get_user_by_subject, subject)

    async def create_user(
        self,
        subject: str,
        email: str,
        username: str,
        avatar_url: str | None = None,
    ) -> UserRecord:
        return await asyncio.to_thread(self._create_user, subject, email, username, avatar_url)

    def _get_user_by_subject(self, subject: str) -> UserRecord | None:
        with self._session("fetch user") as session:
            row = session.scalars(select(UserRow).where(UserRow.auth0_sub == subject)).first()
            return _user(row) if row else None

    def _create_user(
        self, subject: str, email: str, username: str, avatar_url: str | None
    ) -> UserRecord:
        try:
            with self._session("create user") as session:
                row = session.scalars(select(UserRow).where(UserRow.auth0_sub == subject)).first()
                if row is None:
                    row = UserRow(
                        auth0_sub=subject,
                        email=email,
                        username=username,
                        avatar_url=avatar_url,
                    )
                    session.add(row)
                    session.flush()
                    logger.info("Created user %s", row.id)
                return _user(row)
        except StorageError as exc:
            # Lost a creation race on the unique subject: the winner's row is the answer.
            if isinstance(exc.__cause__, IntegrityError):
                existing = self._get_user_by_subject(subject)
                if existing:
                    return existing
            raise

    # --- Coins ---

    async def coin_exists(self, coin_id: str) -> bool:
        return await self.get_coin(coin_id) is not None

    async def get_coin(self, coin_id: str) -> CoinRecord | None:
        return await asyncio.to_thread(self._get_coin, coin_id)

    async def upsert_coin(self, coin: CoinRecord) -> None:
        await asyncio.to_thread(self._upsert_coin, coin)

    async def record_snapshot(
        self,
        coin_id: str,
        price: float,
        market_cap: float | None = None,
        volume_24h: float | None = None,
    ) -> None:
        await asyncio.to_thread(self._record_snapshot, coin_id, price, market_cap, volume_24h)

    def _get_coin(self, coin_id: str) -> CoinRecord | None:
        with self._session("fetch coin") as session:
            row = session.get(CoinRow, coin_id)
            return _coin(row) if row else None

    def _upsert_coin(self, coin: CoinRecord) -> None:
        with self._session("update coin") as session:
            row = _coin_row(coin)
            row.last_updated = utcnow()
            session.merge(row)

    def _record_snapshot(
        self, coin_id: str, price: float, market_cap: float | None, volume_24h: float | None
    ) -> None:
        with self._session("record snapshot") as session:
            session.add(
                SnapshotRow(coin_id=coin_id, price=price, market_cap=market_cap, volume_24h=volume_24h)
            )

    def snapshot_count(self, coin_id: str) -> int:
        with self._session("count snapshots") as session:
            return session.scalar(
                select(func.count(SnapshotRow.id)).where(SnapshotRow.coin_id == coin_id)
            )

    # --- Messages ---

    async def append_message(
        self,
        room_id: str,
        user_id: str,
        content: str,
        created_at: datetime | None = None,
    ) -> ChatMessage:
        return await asyncio.to_thread(self._append_message, room_id, user_id, content, created_at)

    async def recent_messages(
        self,
        room_id: str,
        limit: int,
        offset: int = 0,
        before: datetime | None = None,
    ) -> list[ChatMessage]:
        return await asyncio.to_thread(self._recent_messages, room_id, limit, offset, before)

    async def get_message(self, message_id: str) -> ChatMessage | None:
        return await asyncio.to_thread(self._get_message, message_id)

    async def delete_message(self, message_id: str) -> bool:
        return await asyncio.to_thread(self._delete_message, message_id)

    async def prune_rooms(self, keep: int) -> int:
        return await asyncio.to_thread(self._prune_rooms, keep)

    async def active_rooms(self, since: datetime, limit: int) -> list[RoomActivity]:
        return await asyncio.to_thread(self._active_rooms, since, limit)

    def _append_message(
        self, room_id: str, user_id: str, content: str, created_at: datetime | None
    ) -> ChatMessage:
        with self._session("save message") as session:
            row = MessageRow(
                coin_id=room_id,
                user_id=user_id,
                content=content,
                created_at=as_utc(created_at) if created_at else utcnow(),
            )
            session.add(row)
            session.flush()
            row.user = session.get(UserRow, user_id)
            return _message(row)

    def _recent_messages(
        self, room_id: str, limit: int, offset: int, before: datetime | None
    ) -> list[ChatMessage]:
        with self._session("fetch messages") as session:
            stmt = select(MessageRow).where(
                MessageRow.coin_id == room_id,
                MessageRow.is_deleted.is_(False),
            )
            if before is not None:
                stmt = stmt.where(MessageRow.created_at < as_utc(before))
            stmt = (
                stmt.order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return [_message(row) for row in session.scalars(stmt).all()]

    def _get_message(self, message_id: str) -> ChatMessage | None:
        with self._session("fetch message") as session:
            row = session.get(MessageRow, message_id)
            return _message(row) if row else None

    def _delete_message(self, message_id: str) -> bool:
        with self._session("delete message") as session:
            row = session.get(MessageRow, message_id)
            if row is None:
                return False
            row.is_deleted = True
            return True

    def _prune_rooms(self, keep: int) -> int:
        removed = 0
        with self._session("clean up old messages") as session:
            room_ids = session.scalars(select(MessageRow.coin_id).distinct()).all()
            for room_id in room_ids:
                keep_ids = session.scalars(
                    select(MessageRow.id)
                    .where(MessageRow.coin_id == room_id, MessageRow.is_deleted.is_(False))
                    .order_by(MessageRow.created_at.desc(), MessageRow.id.desc())
                    .limit(keep)
                ).all()
                result = session.execute(
                    delete(MessageRow)
                    .where(MessageRow.coin_id == room_id, MessageRow.id.not_in(keep_ids))
                    .execution_options(synchronize_session=False)
                )
                removed += result.rowcount or 0
        return removed

    def _active_rooms(self, since: datetime, limit: int) -> list[RoomActivity]:
        last_activity = func.max(MessageRow.created_at)
        with self._session("fetch active rooms") as session:
            rows = session.execute(
                select(MessageRow.coin_id, last_activity, func.count(MessageRow.id))
                .where(MessageRow.created_at >= as_utc(since), MessageRow.is_deleted.is_(False))
                .group_by(MessageRow.coin_id)
                .order_by(last_activity.desc())
                .limit(limit)
            ).all()
            return [
                RoomActivity(room_id=room_id, last_activity=_aware(latest), message_count=total)
                for room_id, latest, total in rows
            ]

    # --- Internal ---

    @contextmanager
    def _session(self, action: str) -> Iterator[Session]:
        """Transaction scope that maps driver failures to StorageError."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error("Database error while trying to %s: %s", action, e)
            raise StorageError(f"Failed to {action}") from e
        finally:
            session.close()


def _user(row: UserRow) -> UserRecord:
    return UserRecord(
        id=row.id,
        subject=row.auth0_sub,
        email=row.email,
        username=row.username,
        avatar_url=row.avatar_url,
        created_at=_aware(row.created_at) or utcnow(),
    )


def _coin(row: CoinRow) -> CoinRecord:
    return CoinRecord(
        id=row.id,
        name=row.name,
        symbol=row.symbol,
        image_url=row.image_url,
        current_price=row.current_price,
        market_cap=row.market_cap,
        price_change_24h=row.price_change_24h,
        market_cap_rank=row.market_cap_rank,
        last_updated=_aware(row.last_updated) or utcnow(),
    )


def _coin_row(coin: CoinRecord) -> CoinRow:
    return CoinRow(
        id=coin.id,
        name=coin.name,
        symbol=coin.symbol,
        image_url=coin.image_url,
        current_price=coin.current_price,
        market_cap=coin.market_cap,
        price_change_24h=coin.price_change_24h,
        market_cap_rank=coin.market_cap_rank,
        last_updated=coin.last_updated,
    )


def _message(row: MessageRow) -> ChatMessage:
    user = row.user
    author = MessageAuthor(
        id=row.user_id,
        name=user.username if user else "Unknown",
        email=user.email if user else "",
    )
    return ChatMessage(
        id=row.id,
        room_id=row.coin_id,
        content=row.content,
        created_at=_aware(row.created_at),
        author=author,
        is_deleted=bool(row.is_deleted),
    )
