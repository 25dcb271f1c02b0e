"""Server-sent event stream of the prices on the PriceBoard."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import StreamingResponse

from .prices import PriceBoard

logger = logging.getLogger(__name__)

RETRY_MS = 1000
HEARTBEAT_TICKS = 15  # idle polls between keep-alive comments


def create_stream_router(board: PriceBoard, interval: float = 1.0) -> APIRouter:
    router = APIRouter(prefix="/api/stream", tags=["streaming"])

    @router.get("/prices")
    async def stream_prices(request: Request, ids: str = "") -> StreamingResponse:
        """Live prices for the coins the gateway has observed.

        `ids` restricts the stream to a comma-separated list of coin ids.
        Each change of the board is sent as one `prices` event whose id is
        the board version:

            event: prices
            id: 42
            data: {"bitcoin": {"coinId": "bitcoin", "price": 64000.5, ...}}
        """
        wanted = frozenset(coin_id.strip() for coin_id in ids.split(",") if coin_id.strip())
        return StreamingResponse(
            price_events(board, request, wanted, interval=interval),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    return router


def format_event(data: Any, event: str | None = None, event_id: int | None = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    if event_id is not None:
        lines.append(f"id: {event_id}")
    lines.append(f"data: {json.dumps(data, separators=(',', ':'))}")
    return "\n".join(lines) + "\n\n"


async def price_events(
    board: PriceBoard,
    request: Request,
    wanted: frozenset[str] = frozenset(),
    interval: float = 1.0,
) -> AsyncGenerator[str, None]:
    """Poll the board and yield an event whenever its version moves.

    Ends when the client goes away.
    """
    yield f"retry: {RETRY_MS}\n\n"

    peer = request.client.host if request.client else "unknown"
    logger.info("Price stream opened for %s", peer)
    seen_version = None
    idle = 0
    try:
        while not await request.is_disconnected():
            version = board.version
            if version != seen_version:
                seen_version = version
                snapshot = {
                    coin_id: observed.to_dict()
                    for coin_id, observed in board.get_all().items()
                    if not wanted or coin_id in wanted
                }
                if snapshot:
                    idle = 0
                    yield format_event(snapshot, event="prices", event_id=version)
            else:
                idle += 1
                if idle >= HEARTBEAT_TICKS:
                    idle = 0
                    yield ": keep-alive\n\n"
            await asyncio.sleep(interval)
    except asyncio.CancelledError:
        logger.info("Price stream cancelled for %s", peer)
        raise
    logger.info("Price stream closed for %s", peer)
