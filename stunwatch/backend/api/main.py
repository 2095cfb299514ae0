"""
api/main.py

FastAPI application for the StunWatch dashboard.

  GET  /                 — dashboard page
  GET  /api/connections  — snapshot of detected connections
  GET  /api/stats        — pipeline counters
  GET  /health           — liveness + live-feed client counts
  WS   /ws               — snapshot replay on connect, then one message per
                           newly detected connection

The tracker is passed in explicitly and kept on app.state; routes reach it
through a dependency, never through a module global.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket
from fastapi.responses import FileResponse
from fastapi.websockets import WebSocketDisconnect

from ..stun import ConnectionTracker
from .routes import connections as connections_router
from .routes import stats as stats_router
from .ws_manager import CONNECTIONS_CHANNEL, WebSocketManager, ws_manager

logger = logging.getLogger(__name__)

INDEX_HTML = Path(__file__).resolve().parent.parent / "web" / "index.html"


def create_app(
    tracker: ConnectionTracker,
    manager: WebSocketManager | None = None,
) -> FastAPI:
    manager = manager if manager is not None else ws_manager

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("FastAPI startup")
        yield
        logger.info("FastAPI shutdown")

    app = FastAPI(
        title="StunWatch — P2P STUN connection detector",
        version="1.0.0",
        description="Passive detection of STUN-based peer-to-peer connections",
        lifespan=lifespan,
    )
    app.state.tracker = tracker
    app.state.ws_manager = manager

    # REST routers
    app.include_router(connections_router.router, prefix="/api")
    app.include_router(stats_router.router,       prefix="/api")

    @app.get("/", include_in_schema=False)
    async def index() -> FileResponse:
        return FileResponse(INDEX_HTML, media_type="text/html")

    # WebSockets
    @app.websocket("/ws")
    async def ws_connections(websocket: WebSocket):
        await manager.connect(websocket, CONNECTIONS_CHANNEL)
        try:
            for conn in tracker.snapshot():
                await manager.send(websocket, conn.to_dict())
            while True:
                await websocket.receive_text()
        except (WebSocketDisconnect, Exception):
            await manager.disconnect(websocket, CONNECTIONS_CHANNEL)

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "ws_connections": manager.all_counts()}

    return app
