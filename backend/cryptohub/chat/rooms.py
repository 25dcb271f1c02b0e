"""Room membership registry."""

from __future__ import annotations

from threading import Lock

from .models import NO_ROOM, InRoom, Session


class RoomRegistry:
    """Tracks which sessions are in which room.

    A room exists only while it has members. Every mutation happens under one
    lock, so concurrent joins and leaves never lose each other's updates and a
    session is never listed in two rooms.
    """

    def __init__(self) -> None:
        self._rooms: dict[str, dict[str, Session]] = {}
        self._lock = Lock()

    def move(self, session: Session, room_id: str) -> str | None:
        """Atomically take the session out of its current room and put it in room_id.

        Returns the room it was in before, or None.
        """
        with self._lock:
            previous = session.room_id
            if previous is not None:
                self._discard(previous, session)
            self._rooms.setdefault(room_id, {})[session.id] = session
            session.state = InRoom(room_id)
            return previous

    def remove(self, session: Session, room_id: str | None = None) -> str | None:
        """Take the session out of its room.

        With room_id given, only acts when the session is in that room.
        Returns the room left, or None when nothing changed.
        """
        with self._lock:
            current = session.room_id
            if current is None or (room_id is not None and current != room_id):
                return None
            self._discard(current, session)
            session.state = NO_ROOM
            return current

    def members(self, room_id: str) -> list[Session]:
        """Snapshot of the sessions currently in a room."""
        with self._lock:
            return list(self._rooms.get(room_id, {}).values())

    def _discard(self, room_id: str, session: Session) -> None:
        members = self._rooms.get(room_id)
        if members is None:
            return
        members.pop(session.id, None)
        if not members:
            del self._rooms[room_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms
