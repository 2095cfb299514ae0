"""
capture/parser.py

Converts a raw Scapy packet into a RawDatagram.

  - Called from Scapy's callback thread (not asyncio). Synchronous and fast,
    no I/O, no blocking calls.
  - Returns None for anything that is not UDP over IPv4/IPv6 so the caller
    can count and skip it.
  - Never keeps the Scapy packet object; only the 4-tuple and payload bytes.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scapy.packet import Packet  # type: ignore[import-untyped]

from ..models import RawDatagram

logger = logging.getLogger(__name__)


def parse_packet(pkt: "Packet") -> RawDatagram | None:
    """
    Parse a raw Scapy packet into a RawDatagram.

    Args:
        pkt: Raw Scapy packet from the AsyncSniffer callback.

    Returns:
        RawDatagram for UDP packets, None otherwise.
    """
    # Lazy import keeps this module importable without scapy in test env
    from scapy.layers.inet import IP, UDP  # type: ignore[import-untyped]
    from scapy.layers.inet6 import IPv6  # type: ignore[import-untyped]

    if pkt.haslayer(IP):
        ip_layer = pkt[IP]
    elif pkt.haslayer(IPv6):
        ip_layer = pkt[IPv6]
    else:
        return None

    if not pkt.haslayer(UDP):
        return None

    udp = pkt[UDP]
    return RawDatagram(
        src_ip=str(ip_layer.src),
        src_port=int(udp.sport),
        dst_ip=str(ip_layer.dst),
        dst_port=int(udp.dport),
        payload=bytes(udp.payload) if udp.payload else b"",
    )
