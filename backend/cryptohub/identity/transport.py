"""Token extraction for HTTP requests and WebSocket handshakes."""

from __future__ import annotations

from fastapi import WebSocket


def bearer_token(authorization: str | None) -> str | None:
    """Token from an `Authorization: Bearer <token>` header value, or None."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization.removeprefix("Bearer ").strip() or None


def websocket_token(websocket: WebSocket) -> str | None:
    """Token for a WebSocket handshake.

    Browsers cannot set headers on WebSocket connections, so `?token=` or
    `?access_token=` is accepted alongside the Authorization header.
    """
    return (
        websocket.query_params.get("token")
        or websocket.query_params.get("access_token")
        or bearer_token(websocket.headers.get("authorization"))
    )
