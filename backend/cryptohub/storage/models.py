"""Records exchanged with the storage backends."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value: datetime) -> str:
    """ISO-8601 in UTC with a trailing Z, the shape the frontend parses."""
    return as_utc(value).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True, slots=True)
class UserRecord:
    """Internal user, keyed by the identity provider's subject claim."""

    id: str
    subject: str
    email: str
    username: str
    avatar_url: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True, slots=True)
class CoinRecord:
    """Last observed market state of a coin. The coin id doubles as the chat room id."""

    id: str
    name: str
    symbol: str
    image_url: str | None = None
    current_price: float | None = None
    market_cap: float | None = None
    price_change_24h: float | None = None
    market_cap_rank: int | None = None
    last_updated: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "image_url": self.image_url,
            "current_price": self.current_price,
            "price_change_24h": self.price_change_24h,
        }


@dataclass(frozen=True, slots=True)
class MessageAuthor:
    id: str
    name: str
    email: str


@dataclass(frozen=True, slots=True)
class ChatMessage:
    """A persisted chat message joined with its author."""

    id: str
    room_id: str
    content: str
    created_at: datetime
    author: MessageAuthor
    is_deleted: bool = False

    def to_dict(self) -> dict:
        """Serialize to the wire shape used by both REST and realtime events."""
        return {
            "id": self.id,
            "roomId": self.room_id,
            "content": self.content,
            "createdAt": isoformat(self.created_at),
            "user": {
                "id": self.author.id,
                "name": self.author.name,
                "email": self.author.email,
            },
        }


@dataclass(frozen=True, slots=True)
class RoomActivity:
    """Aggregate of recent messages in one room."""

    room_id: str
    last_activity: datetime
    message_count: int
