"""REST routes for chat history, posting and deletion."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Header, Query

from ..identity.models import Identity
from ..identity.resolver import UserIdentityResolver
from ..identity.tokens import TokenVerifier
from ..identity.transport import bearer_token
from .protocol import ChatRoomProtocol
from .schemas import DeleteMessageResponse, PostMessageRequest
from .service import ChatService

MAX_ROOMS = 50


def create_chat_router(
    service: ChatService,
    protocol: ChatRoomProtocol,
    verifier: TokenVerifier,
    resolver: UserIdentityResolver,
) -> APIRouter:
    """Create the /api/chat router. Every route requires a bearer token."""

    async def current_identity(authorization: str | None = Header(default=None)) -> Identity:
        identity = await verifier.verify(bearer_token(authorization))
        await resolver.resolve(identity)
        return identity

    router = APIRouter(
        prefix="/api/chat",
        tags=["chat"],
        dependencies=[Depends(current_identity)],
    )

    @router.get("/messages")
    async def list_messages(
        room_id: str = Query(alias="roomId", min_length=1),
        limit: int = Query(50, ge=1, le=100),
        offset: int = Query(0, ge=0),
        before: datetime | None = None,
    ) -> dict:
        page = await service.list_messages(room_id, limit=limit, offset=offset, before=before)
        return page.to_dict()

    @router.post("/messages", status_code=201)
    async def post_message(
        body: PostMessageRequest,
        identity: Identity = Depends(current_identity),
    ) -> dict:
        message = await service.post_message(identity, body.room_id, body.content)
        # Members currently in the room see REST posts live as well.
        await protocol.broadcast_message(message)
        return {"message": message.to_dict()}

    @router.delete("/messages/{message_id}")
    async def delete_message(
        message_id: str,
        identity: Identity = Depends(current_identity),
    ) -> DeleteMessageResponse:
        await protocol.delete_message(identity, message_id)
        return DeleteMessageResponse()

    @router.get("/rooms")
    async def active_rooms(limit: int = Query(20, ge=1)) -> dict:
        rooms = await service.active_rooms(min(limit, MAX_ROOMS))
        return {"rooms": rooms, "totalCount": len(rooms)}

    return router
