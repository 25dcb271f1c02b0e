"""Message operations shared by the REST routes and the realtime protocol."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from ..errors import ForbiddenError, NotFoundError, StorageError, ValidationError
from ..identity.models import Identity
from ..identity.resolver import UserIdentityResolver
from ..storage.interface import CoinStore, MessageStore
from ..storage.models import ChatMessage, UserRecord, isoformat, utcnow

logger = logging.getLogger(__name__)

ACTIVE_ROOM_WINDOW = timedelta(hours=24)


@dataclass(frozen=True, slots=True)
class MessagePage:
    """One page of room history, oldest first."""

    messages: list[ChatMessage] = field(default_factory=list)
    has_more: bool = False
    next_offset: int = 0

    def to_dict(self) -> dict:
        return {
            "messages": [message.to_dict() for message in self.messages],
            "hasMore": self.has_more,
            "nextOffset": self.next_offset,
        }


class ChatService:
    """Validation, authorship and persistence rules for chat messages.

    Both entry points go through here, so the message length limit and the
    coin-existence check are the same for REST and realtime senders.
    """

    def __init__(
        self,
        messages: MessageStore,
        coins: CoinStore,
        resolver: UserIdentityResolver,
        max_message_length: int = 1000,
        history_limit: int = 50,
        retention_keep: int = 50,
    ) -> None:
        self._messages = messages
        self._coins = coins
        self._resolver = resolver
        self.max_message_length = max_message_length
        self.history_limit = history_limit
        self.retention_keep = retention_keep

    async def post_message(self, identity: Identity, room_id: str, content: str) -> ChatMessage:
        """Validate and persist a message. Nothing is stored when validation fails."""
        room_id = (room_id or "").strip()
        body = (content or "").strip()
        if not room_id or not body:
            raise ValidationError("Room ID and message are required")
        if len(body) > self.max_message_length:
            raise ValidationError(f"Message too long (max {self.max_message_length} characters)")

        user = await self._resolve(identity)
        if not await self._coins.coin_exists(room_id):
            raise NotFoundError("Coin not found")

        try:
            return await self._messages.append_message(room_id, user.id, body)
        except StorageError as e:
            raise StorageError("Failed to send message") from e

    async def recent_messages(self, room_id: str, limit: int | None = None) -> list[ChatMessage]:
        """The newest non-deleted messages of a room, returned oldest first."""
        newest_first = await self._messages.recent_messages(room_id, limit or self.history_limit)
        return list(reversed(newest_first))

    async def list_messages(
        self,
        room_id: str,
        limit: int = 50,
        offset: int = 0,
        before: datetime | None = None,
    ) -> MessagePage:
        newest_first = await self._messages.recent_messages(
            room_id, limit, offset=offset, before=before
        )
        return MessagePage(
            messages=list(reversed(newest_first)),
            has_more=len(newest_first) == limit,
            next_offset=offset + limit,
        )

    async def delete_message(self, identity: Identity, message_id: str) -> None:
        """Soft-delete a message on behalf of its author."""
        user = await self._resolve(identity)
        message = await self._messages.get_message(message_id)
        if message is None or message.is_deleted:
            raise NotFoundError("Message not found")
        if message.author.id != user.id:
            raise ForbiddenError("You can only delete your own messages")
        await self._messages.delete_message(message_id)
        logger.info("Message %s deleted by its author", message_id)

    async def active_rooms(self, limit: int = 20) -> list[dict]:
        """Rooms with messages in the last 24 hours, most recently active first."""
        activity = await self._messages.active_rooms(utcnow() - ACTIVE_ROOM_WINDOW, limit)
        rooms = []
        for room in activity:
            coin = await self._coins.get_coin(room.room_id)
            rooms.append(
                {
                    "roomId": room.room_id,
                    "coin": coin.to_dict() if coin else None,
                    "lastActivity": isoformat(room.last_activity),
                    "messageCount": room.message_count,
                }
            )
        return rooms

    async def sweep_retention(self) -> int:
        """Trim every room to its newest `retention_keep` messages."""
        removed = await self._messages.prune_rooms(self.retention_keep)
        logger.info("Old messages cleaned up: %d removed", removed)
        return removed

    async def _resolve(self, identity: Identity) -> UserRecord:
        try:
            return await self._resolver.resolve(identity)
        except StorageError as e:
            logger.error("User lookup failed: %s", e)
            raise NotFoundError("User not found") from e
