"""FastAPI application factory and server entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .chat import (
    ChatRoomProtocol,
    ChatService,
    RetentionSweeper,
    create_chat_router,
    create_chat_socket_router,
)
from .config import Settings
from .errors import CryptoHubError
from .identity import TokenVerifier, UserIdentityResolver
from .market import (
    MarketDataGateway,
    MarketDataUpstream,
    PriceBoard,
    ResponseCache,
    create_market_router,
    create_market_upstream,
    create_stream_router,
)
from .storage import Datastore, create_datastore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once. Later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)


def create_app(
    settings: Settings | None = None,
    *,
    datastore: Datastore | None = None,
    verifier: TokenVerifier | None = None,
    upstream: MarketDataUpstream | None = None,
) -> FastAPI:
    """Build the application.

    Collaborators default to what the settings describe; tests pass their own.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    datastore = datastore or create_datastore(settings)
    verifier = verifier or TokenVerifier(
        settings.auth0_domain,
        settings.auth0_audience,
        timeout=settings.jwks_timeout,
    )
    upstream = upstream or create_market_upstream(settings)

    resolver = UserIdentityResolver(datastore)
    cache = ResponseCache(max_entries=settings.cache_max_entries)
    board = PriceBoard()
    gateway = MarketDataGateway(upstream, cache, coins=datastore, board=board)
    service = ChatService(
        datastore,
        datastore,
        resolver,
        max_message_length=settings.max_message_length,
        history_limit=settings.history_limit,
        retention_keep=settings.retention_keep,
    )
    protocol = ChatRoomProtocol(service)
    sweeper = RetentionSweeper(service, interval=settings.retention_interval, cache=cache)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await sweeper.start()
        try:
            yield
        finally:
            await sweeper.stop()
            await upstream.close()
            await verifier.close()
            await datastore.close()

    app = FastAPI(title="CryptoHub API", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CryptoHubError)
    async def handle_app_error(request: Request, exc: CryptoHubError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_invalid_request(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "chatSessions": len(protocol), "activeRooms": len(protocol.rooms)}

    app.include_router(create_market_router(gateway))
    app.include_router(create_stream_router(board))
    app.include_router(create_chat_router(service, protocol, verifier, resolver))
    app.include_router(create_chat_socket_router(protocol, verifier, resolver))

    app.state.settings = settings
    app.state.datastore = datastore
    app.state.cache = cache
    app.state.board = board
    app.state.gateway = gateway
    app.state.protocol = protocol
    app.state.sweeper = sweeper

    logger.info("CryptoHub application initialized")
    return app


def run() -> None:
    """Serve the application with uvicorn (HOST/PORT from the environment)."""
    settings = Settings.from_env()
    setup_logging(settings.log_level)
    logger.info("Starting CryptoHub server on %s:%d", settings.host, settings.port)
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
