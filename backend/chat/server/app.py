from __future__ import annotations

import contextlib
from pathlib import Path
from typing import TYPE_CHECKING

import structlog
from starlette.applications import Starlette
from starlette.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse
from starlette.routing import Mount, Route, WebSocketRoute
from starlette.staticfiles import StaticFiles

from chat.messaging.router import MessageRouter
from chat.server.settings import ChatServerSettings
from chat.server.websocket import websocket_endpoint
from chat.session.broker import SessionBroker
from shared.build_info import BUILD_INFO
from shared.logging import setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from starlette.requests import Request
    from starlette.websockets import WebSocket

logger = structlog.get_logger()


async def health(_request: Request) -> JSONResponse:
    return JSONResponse({"status": "ok", **BUILD_INFO.as_dict()})


async def status(request: Request) -> JSONResponse:
    broker: SessionBroker = request.app.state.broker
    return JSONResponse(
        {
            "status": "ok",
            **BUILD_INFO.as_dict(),
            "uptime_seconds": BUILD_INFO.uptime_seconds(),
            "online": broker.online_count,
            "rooms": broker.room_count,
            "waiting": broker.waiting_count,
        },
    )


def create_app(
    settings: ChatServerSettings | None = None,
    broker: SessionBroker | None = None,
) -> Starlette:
    if settings is None:  # pragma: no cover
        settings = ChatServerSettings()
    if broker is None:
        broker = SessionBroker(send_timeout=settings.send_timeout_seconds, max_pending=settings.send_queue_size)

    router = MessageRouter(broker)

    async def ws_endpoint(websocket: WebSocket) -> None:
        await websocket_endpoint(websocket, router, settings)

    routes: list[Route | WebSocketRoute | Mount] = [
        Route("/health", health, methods=["GET"]),
        Route("/status", status, methods=["GET"]),
        WebSocketRoute("/ws", ws_endpoint),
    ]

    # Mounted last so it only catches paths the routes above do not.
    static_dir = Path(settings.static_dir).resolve()
    if static_dir.is_dir():
        routes.append(Mount("/", app=StaticFiles(directory=str(static_dir), html=True), name="static"))
    else:
        logger.warning("static directory not found, client files will not be served", path=str(static_dir))

    @contextlib.asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        yield
        await broker.close()

    app = Starlette(routes=routes, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["Content-Type"],
    )
    app.state.settings = settings
    app.state.broker = broker

    logger.info("chat server ready")
    return app


def get_app() -> Starlette:  # pragma: no cover
    """ASGI application factory for production use (uvicorn --factory chat.server.app:get_app)."""
    settings = ChatServerSettings()
    setup_logging(log_dir=settings.log_dir)
    return create_app(settings=settings)
