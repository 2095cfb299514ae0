"""
backend/models.py

Shared dataclasses passed between the capture layer, the STUN core
and the presentation layer.

RawDatagram   — one captured UDP datagram with its 4-tuple
P2PConnection — one detected peer → local flow with a running packet count
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


# ---------------------------------------------------------------------------
# Capture output
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RawDatagram:
    """A single captured UDP datagram."""

    src_ip: str
    """Source IP address, e.g. '203.0.113.9'."""

    src_port: int
    """Source UDP port (0–65535)."""

    dst_ip: str
    """Destination IP address, e.g. '192.168.1.5'."""

    dst_port: int
    """Destination UDP port (0–65535)."""

    payload: bytes = b""
    """UDP payload. May be empty."""


# ---------------------------------------------------------------------------
# Tracker output
# ---------------------------------------------------------------------------

def connection_key(local_ip: str, local_port: int) -> str:
    """Dedup key for a tracked flow: ``'<local_ip>:<local_port>'``."""
    return f"{local_ip}:{local_port}"


@dataclass(slots=True)
class P2PConnection:
    """
    A peer-to-peer flow observed arriving at a local endpoint.

    The peer fields come from the first packet seen for the local endpoint
    and are never rewritten; only ``packet_count`` changes afterwards.
    """

    peer_ip: str
    peer_port: int
    local_ip: str
    local_port: int
    packet_count: int = 1

    @property
    def key(self) -> str:
        return connection_key(self.local_ip, self.local_port)

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape used by the REST snapshot and the live feed."""
        return {
            "PeerIP":      self.peer_ip,
            "PeerPort":    self.peer_port,
            "LocalIP":     self.local_ip,
            "LocalPort":   self.local_port,
            "PacketCount": self.packet_count,
        }
