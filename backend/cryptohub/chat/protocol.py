"""Chat Room Protocol: room membership, broadcast and history replay.

Inbound events (session → server):
    join_room{roomId}             leave the current room, join roomId, get history
    send_message{roomId, content} persist and broadcast to roomId
    leave_room{roomId}            leave roomId if currently in it

Outbound events:
    room_joined{roomId, messages[]}   private, oldest first
    message{id, roomId, content, createdAt, user{id, name, email}}   whole room
    user_joined{username}             room, minus the joiner
    user_left{username}               remaining room members
    error{message}                    private

Broadcast order within a room follows persistence completion order. Two
sends racing in the same room may be delivered in either order.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from ..errors import CryptoHubError, ForbiddenError, StorageError, ValidationError
from ..identity.models import Identity
from ..storage.models import ChatMessage
from .models import Session
from .rooms import RoomRegistry
from .service import ChatService

logger = logging.getLogger(__name__)


class ChatRoomProtocol:
    """Handles session events and fans messages out to room members."""

    def __init__(self, service: ChatService, rooms: RoomRegistry | None = None) -> None:
        self._service = service
        self._rooms = rooms or RoomRegistry()
        self._sessions: dict[str, Session] = {}
        self._handlers = {
            "join_room": lambda session, data: self.join_room(session, data.get("roomId")),
            "send_message": lambda session, data: self.send_message(
                session, data.get("roomId"), data.get("content")
            ),
            "leave_room": lambda session, data: self.leave_room(session, data.get("roomId")),
        }

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    def connect(self, session: Session) -> None:
        """Register a session whose identity has been verified."""
        self._sessions[session.id] = session
        logger.info("Session %s connected to chat", session.id)

    async def disconnect(self, session: Session) -> None:
        """Drop the session and tell its room it left."""
        self._sessions.pop(session.id, None)
        left = self._rooms.remove(session)
        if left:
            await self._broadcast(left, "user_left", {"username": session.display_name})
        logger.info("Session %s disconnected from chat", session.id)

    async def dispatch(self, session: Session, event: Any, data: Any) -> None:
        """Run one inbound event. Failures become a private error event."""
        try:
            handler = self._handlers.get(event) if isinstance(event, str) else None
            if handler is None:
                raise ValidationError(f"Unknown event: {event}")
            if not isinstance(data, dict):
                raise ValidationError("Event data must be an object")
            await handler(session, data)
        except CryptoHubError as e:
            await self._deliver(session, "error", {"message": e.message})
        except Exception:
            logger.exception("Chat event %r failed for session %s", event, session.id)
            await self._deliver(session, "error", {"message": "Internal server error"})

    async def join_room(self, session: Session, room_id: Any) -> None:
        room_id = room_id.strip() if isinstance(room_id, str) else ""
        if not room_id:
            raise ValidationError("Room ID is required")

        previous = self._rooms.move(session, room_id)
        switched = previous != room_id
        if previous and switched:
            await self._broadcast(previous, "user_left", {"username": session.display_name})

        # History is best-effort: the session stays in the room even if it fails.
        try:
            messages = await self._service.recent_messages(room_id)
        except StorageError as e:
            logger.error("Failed to load history for room %s: %s", room_id, e)
            await self._deliver(session, "error", {"message": "Failed to load messages"})
        else:
            await self._deliver(
                session,
                "room_joined",
                {"roomId": room_id, "messages": [message.to_dict() for message in messages]},
            )

        if switched:
            await self._broadcast(
                room_id, "user_joined", {"username": session.display_name}, exclude=session
            )

    async def send_message(self, session: Session, room_id: Any, content: Any) -> ChatMessage:
        if not isinstance(room_id, str) or not room_id.strip():
            raise ValidationError("Room ID and message are required")
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("Room ID and message are required")
        room_id = room_id.strip()
        if session.room_id != room_id:
            raise ForbiddenError("Join the room before sending messages")

        message = await self._service.post_message(session.identity, room_id, content)
        await self.broadcast_message(message)
        return message

    async def leave_room(self, session: Session, room_id: Any) -> None:
        """Leave room_id. A no-op when the session is not in it."""
        if not isinstance(room_id, str) or not room_id.strip():
            return
        left = self._rooms.remove(session, room_id.strip())
        if left:
            await self._broadcast(left, "user_left", {"username": session.display_name})

    async def delete_message(self, identity: Identity, message_id: str) -> None:
        """Delete a message on behalf of its author.

        Connected sessions are not notified; the message disappears from the
        next history fetch.
        """
        await self._service.delete_message(identity, message_id)

    async def broadcast_message(self, message: ChatMessage) -> None:
        """Deliver a persisted message to every session in its room."""
        await self._broadcast(message.room_id, "message", message.to_dict())

    # --- Internal ---

    async def _broadcast(
        self,
        room_id: str,
        event: str,
        data: dict[str, Any],
        exclude: Session | None = None,
    ) -> None:
        members = [member for member in self._rooms.members(room_id) if member is not exclude]
        if not members:
            return
        results = await asyncio.gather(
            *(member.send(event, data) for member in members),
            return_exceptions=True,
        )
        for member, result in zip(members, results):
            if isinstance(result, BaseException):
                logger.warning(
                    "Failed to deliver %s to session %s in room %s: %s",
                    event,
                    member.id,
                    room_id,
                    result,
                )

    async def _deliver(self, session: Session, event: str, data: dict[str, Any]) -> None:
        try:
            await session.send(event, data)
        except Exception as e:
            logger.warning("Failed to deliver %s to session %s: %s", event, session.id, e)

    def __len__(self) -> int:
        return len(self._sessions)
