"""Realtime per-coin chat.

Public API:
    Session, NoRoom, InRoom    - Connection state (tagged room state)
    RoomRegistry               - Room membership tracking
    ChatService                - Message rules shared by REST and realtime
    ChatRoomProtocol           - Join/send/leave handling and broadcast
    RetentionSweeper           - Hourly history trimming
    create_chat_router         - FastAPI router factory for /api/chat
    create_chat_socket_router  - FastAPI router factory for the /ws/chat endpoint
"""

from .models import InRoom, NoRoom, Session
from .protocol import ChatRoomProtocol
from .retention import RetentionSweeper
from .rooms import RoomRegistry
from .router import create_chat_router
from .service import ChatService, MessagePage
from .websocket import create_chat_socket_router

__all__ = [
    "ChatRoomProtocol",
    "ChatService",
    "InRoom",
    "MessagePage",
    "NoRoom",
    "RetentionSweeper",
    "RoomRegistry",
    "Session",
    "create_chat_router",
    "create_chat_socket_router",
]
