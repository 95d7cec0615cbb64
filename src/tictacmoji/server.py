"""FastAPI application exposing the match websocket and a health check."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Callable, Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .connections import Connection, ConnectionRegistry
from .lifecycle import MatchLifecycle
from .rooms import RoomStore
from .router import MessageRouter

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    code_generator: Optional[Callable[[], str]] = None,
) -> FastAPI:
    """Build an app with its own registry, room store and lifecycle controller."""

    settings = settings or get_settings()
    registry = ConnectionRegistry()
    store = RoomStore(code_generator=code_generator)
    lifecycle = MatchLifecycle(
        store,
        tick_seconds=settings.countdown_tick_seconds,
        count_from=settings.countdown_from,
    )
    router = MessageRouter(registry, store, lifecycle)

    @contextlib.asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        heartbeat: Optional[asyncio.Task[None]] = None
        if settings.heartbeat_seconds > 0:
            heartbeat = asyncio.create_task(
                registry.run_heartbeat(settings.heartbeat_seconds, router.disconnect)
            )
        try:
            yield
        finally:
            if heartbeat is not None:
                heartbeat.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await heartbeat

    app = FastAPI(
        title="TicTacMoji",
        description="Room-code signaling and match relay for two-player tic-tac-toe",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.registry = registry
    app.state.store = store
    app.state.lifecycle = lifecycle
    app.state.router = router

    @app.get("/health", response_class=PlainTextResponse)
    def health() -> str:
        return "OK"

    @app.exception_handler(StarletteHTTPException)
    async def not_found(_request, _exc: StarletteHTTPException) -> PlainTextResponse:
        # Only GET /health is served over plain HTTP.
        return PlainTextResponse("Not Found", status_code=404)

    @app.websocket("/")
    async def play(websocket: WebSocket) -> None:
        await websocket.accept()
        connection = Connection(websocket=websocket)
        router.connect(connection)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                raw = message.get("text")
                if raw is None:
                    raw = message.get("bytes") or b""
                await router.handle_frame(connection, raw)
        except WebSocketDisconnect:
            pass
        except RuntimeError as exc:
            logger.warning("socket %s failed: %s", connection.id, exc)
        finally:
            await router.disconnect(connection)

    return app


app = create_app()
