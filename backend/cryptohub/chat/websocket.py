"""WebSocket transport for the Chat Room Protocol.

Frames are JSON objects in both directions: {"event": <name>, "data": {...}}.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from ..errors import CryptoHubError
from ..identity.resolver import UserIdentityResolver
from ..identity.tokens import TokenVerifier
from ..identity.transport import websocket_token
from .models import Session
from .protocol import ChatRoomProtocol

logger = logging.getLogger(__name__)


def create_chat_socket_router(
    protocol: ChatRoomProtocol,
    verifier: TokenVerifier,
    resolver: UserIdentityResolver,
) -> APIRouter:
    router = APIRouter(tags=["chat"])

    @router.websocket("/ws/chat")
    async def chat_socket(websocket: WebSocket) -> None:
        """Realtime chat endpoint. The handshake is refused without a valid token."""
        try:
            identity = await verifier.verify(websocket_token(websocket))
            await resolver.resolve(identity)
        except CryptoHubError as e:
            logger.info("Chat connection refused: %s", e.message)
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
            return

        await websocket.accept()

        async def send(event: str, data: dict[str, Any]) -> None:
            await websocket.send_json({"event": event, "data": data})

        session = Session(identity=identity, send=send)
        protocol.connect(session)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
                raw = message.get("text")
                try:
                    frame = json.loads(raw) if raw is not None else None
                except json.JSONDecodeError:
                    frame = None
                if not isinstance(frame, dict):
                    await send("error", {"message": "Malformed frame"})
                    continue
                await protocol.dispatch(session, frame.get("event"), frame.get("data") or {})
        except WebSocketDisconnect:
            pass
        finally:
            # Runs to completion even when the handler is cancelled mid-receive.
            await asyncio.shield(protocol.disconnect(session))

    return router
