"""
api/routes/stats.py

GET /api/stats — capture counters, tracker counters and live-feed clients
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from ...metrics import METRICS
from ...stun import ConnectionTracker
from ..serializers import StatsResponse
from .connections import get_tracker

router = APIRouter(prefix="/stats", tags=["stats"])


@router.get("", response_model=StatsResponse)
async def get_stats(
    request: Request,
    tracker: ConnectionTracker = Depends(get_tracker),
) -> StatsResponse:
    return StatsResponse(
        capture=METRICS.as_dict(),
        tracker=tracker.stats,
        ws_connections=request.app.state.ws_manager.all_counts(),
    )
