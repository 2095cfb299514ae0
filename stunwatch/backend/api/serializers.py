"""
api/serializers.py

Response models for the REST endpoints. Field names follow the live-feed
wire shape (PeerIP, PeerPort, …) so dashboard code reads both the same way.
"""

from __future__ import annotations

from pydantic import BaseModel

from ..models import P2PConnection


class P2PConnectionResponse(BaseModel):
    PeerIP: str
    PeerPort: int
    LocalIP: str
    LocalPort: int
    PacketCount: int

    @classmethod
    def from_connection(cls, conn: P2PConnection) -> "P2PConnectionResponse":
        return cls(**conn.to_dict())


class StatsResponse(BaseModel):
    capture: dict[str, int]
    tracker: dict[str, int]
    ws_connections: dict[str, int]
