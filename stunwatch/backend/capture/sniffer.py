"""
capture/sniffer.py

PacketCapture runs scapy's AsyncSniffer and forwards every UDP datagram that
could carry a STUN message to the capture queue on the event loop.

The sniffer callback runs in scapy's own thread. It only parses, counts and
hands the datagram to the loop with run_coroutine_threadsafe; STUN
classification happens in the ingest consumer.
"""

from __future__ import annotations

import asyncio
import logging
import threading

from scapy.sendrecv import AsyncSniffer  # type: ignore[import-untyped]

from ..metrics import METRICS
from ..models import RawDatagram
from ..pipeline import safe_put
from .parser import parse_packet

logger = logging.getLogger(__name__)


class PacketCapture:
    """
    Capture UDP traffic on one interface into an asyncio.Queue[RawDatagram].

    Args:
        queue:      capture queue from pipeline.init_queues
        loop:       the event loop that owns *queue*
        iface:      device name as reported by capture.devices
        bpf_filter: kernel filter, normally from capture.filter.build_bpf_filter
    """

    def __init__(
        self,
        queue: asyncio.Queue,
        loop: asyncio.AbstractEventLoop,
        iface: str = "eth0",
        bpf_filter: str = "udp",
    ) -> None:
        self._queue = queue
        self._loop = loop
        self._iface = iface
        self._bpf_filter = bpf_filter
        self._sniffer: AsyncSniffer | None = None
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Capture thread
    # ------------------------------------------------------------------

    def _datagram_from(self, pkt) -> RawDatagram | None:
        METRICS.packets_received.inc()
        try:
            datagram = parse_packet(pkt)
        except Exception:
            METRICS.packets_parse_error.inc()
            logger.debug("Unparseable packet on %s", self._iface, exc_info=True)
            return None

        if datagram is None:
            METRICS.packets_non_udp.inc()
            return None
        if not datagram.payload:
            METRICS.datagrams_empty.inc()
            return None
        return datagram

    def _forward(self, datagram: RawDatagram) -> None:
        put = safe_put(self._queue, datagram)
        try:
            asyncio.run_coroutine_threadsafe(put, self._loop)
        except RuntimeError:
            # loop closed while the sniffer thread was still delivering
            put.close()
            METRICS.datagrams_dropped.inc()
            return
        METRICS.datagrams_forwarded.inc()

    def _on_packet(self, pkt) -> None:
        datagram = self._datagram_from(pkt)
        if datagram is not None:
            self._forward(datagram)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        with self._lock:
            if self._sniffer is not None:
                logger.warning("Capture on %s already running", self._iface)
                return
            logger.info("Capturing on %s with filter %r", self._iface, self._bpf_filter)
            sniffer = AsyncSniffer(
                iface=self._iface,
                filter=self._bpf_filter,
                prn=self._on_packet,
                store=False,
            )
            sniffer.start()
            self._sniffer = sniffer

    def stop(self) -> None:
        with self._lock:
            sniffer, self._sniffer = self._sniffer, None
        if sniffer is None:
            return
        try:
            sniffer.stop()
            sniffer.join(timeout=5.0)
        except Exception:
            logger.warning("Sniffer on %s did not stop cleanly", self._iface, exc_info=True)
        logger.info("Capture on %s stopped: %s", self._iface, METRICS.as_dict())

    @property
    def is_running(self) -> bool:
        return self._sniffer is not None

    def __repr__(self) -> str:  # pragma: no cover
        return f"PacketCapture(iface={self._iface!r}, filter={self._bpf_filter!r})"
