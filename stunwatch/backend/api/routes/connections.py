"""
api/routes/connections.py

GET /api/connections — every P2P connection detected so far
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...stun import ConnectionTracker
from ..serializers import P2PConnectionResponse

router = APIRouter(prefix="/connections", tags=["connections"])


def get_tracker(request: Request) -> ConnectionTracker:
    """FastAPI dependency — the tracker handed to create_app()."""
    return request.app.state.tracker


@router.get("", response_model=list[P2PConnectionResponse])
async def list_connections(
    tracker: ConnectionTracker = Depends(get_tracker),
) -> list[P2PConnectionResponse]:
    """Return a snapshot of all known connections (order unspecified)."""
    return [P2PConnectionResponse.from_connection(c) for c in tracker.snapshot()]
