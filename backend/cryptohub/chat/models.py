"""Realtime session state."""

from __future__ import annotations

import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from ..identity.models import Identity

# Delivers one outbound event (name, payload) to the session's transport
Sender = Callable[[str, dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class NoRoom:
    """Connected and verified, but not in any room."""


@dataclass(frozen=True, slots=True)
class InRoom:
    room_id: str


RoomState = NoRoom | InRoom

NO_ROOM = NoRoom()


@dataclass(eq=False, slots=True)
class Session:
    """One live realtime connection: its identity and the single room it occupies."""

    identity: Identity
    send: Sender
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: RoomState = NO_ROOM

    @property
    def room_id(self) -> str | None:
        return self.state.room_id if isinstance(self.state, InRoom) else None

    @property
    def display_name(self) -> str:
        return self.identity.display_name
