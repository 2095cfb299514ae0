"""
stun/tracker.py

ConnectionTracker — turns a stream of RawDatagrams into a deduplicated,
growing table of P2PConnection records.

Filtering order for every datagram:
  1. payload is not STUN                         → discard
  2. source is local, or destination is not local → discard (inbound only)
  3. STUN server reply (MAPPED / XOR-MAPPED)     → discard
  4. source or destination on a known server port → discard
  5. otherwise count it against key 'dst_ip:dst_port'

The table is keyed on the local endpoint. The first packet for a key creates
the record and fixes its peer fields; later packets only bump packet_count.
Records are never evicted.

Concurrency:
  - ingest() takes the write side of an RWLock for the lookup-or-insert step.
  - snapshot() takes the read side and returns copies.
  - The observer is called after the write lock is released, with a copy of
    the new record, and only by the ingest call that created it.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Callable, Iterable, Optional

from ..metrics import Counter
from ..models import P2PConnection, RawDatagram, connection_key
from . import classifier
from .rwlock import RWLock

logger = logging.getLogger(__name__)

Observer = Callable[[P2PConnection], None]


class ConnectionTracker:
    """
    Thread-safe table of detected P2P connections.

    Args:
        local_addresses: IP address strings owned by this host. Used to keep
                         only traffic addressed to us. Frozen at construction.
    """

    def __init__(self, local_addresses: Iterable[str]) -> None:
        self._local_addresses: frozenset[str] = frozenset(local_addresses)
        self._connections: dict[str, P2PConnection] = {}
        self._lock = RWLock()
        self._observer: Optional[Observer] = None

        self._datagrams_seen = Counter()
        self._non_stun = Counter()
        self._not_inbound = Counter()
        self._server_replies = Counter()
        self._server_ports = Counter()
        self._connections_detected = Counter()

        logger.debug(
            "ConnectionTracker initialised — local_addresses=%s",
            sorted(self._local_addresses),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def local_addresses(self) -> frozenset[str]:
        return self._local_addresses

    def ingest(self, datagram: RawDatagram) -> None:
        """Classify one datagram and record it if it is inbound peer STUN traffic."""
        self._datagrams_seen.inc()
        payload = datagram.payload

        if not classifier.is_stun(payload):
            self._non_stun.inc()
            return

        if (
            datagram.src_ip in self._local_addresses
            or datagram.dst_ip not in self._local_addresses
        ):
            self._not_inbound.inc()
            return

        if classifier.is_server_originated(payload):
            self._server_replies.inc()
            logger.debug(
                "STUN server reply from %s:%d (%s)",
                datagram.src_ip, datagram.src_port, classifier.describe(payload),
            )
            return

        if classifier.is_known_server_port(
            datagram.dst_port
        ) or classifier.is_known_server_port(datagram.src_port):
            self._server_ports.inc()
            return

        key = connection_key(datagram.dst_ip, datagram.dst_port)
        created: Optional[P2PConnection] = None
        observer: Optional[Observer] = None

        with self._lock.write():
            record = self._connections.get(key)
            if record is None:
                record = P2PConnection(
                    peer_ip=datagram.src_ip,
                    peer_port=datagram.src_port,
                    local_ip=datagram.dst_ip,
                    local_port=datagram.dst_port,
                    packet_count=1,
                )
                self._connections[key] = record
                created = dataclasses.replace(record)
                observer = self._observer
            else:
                record.packet_count += 1

        if created is None:
            return

        self._connections_detected.inc()
        logger.info(
            "P2P STUN: %s:%d → %s:%d (%s)",
            created.peer_ip, created.peer_port,
            created.local_ip, created.local_port,
            classifier.describe(payload),
        )
        if observer is not None:
            self._notify(observer, created)

    def snapshot(self) -> list[P2PConnection]:
        """Return copies of every tracked connection (order unspecified)."""
        with self._lock.read():
            return [dataclasses.replace(c) for c in self._connections.values()]

    def register_observer(self, callback: Optional[Observer]) -> None:
        """
        Replace the observer notified of each newly detected connection.

        Only connections created after this call are reported; use
        snapshot() for the ones already known. Pass None to unregister.
        """
        with self._lock.write():
            self._observer = callback

    @property
    def stats(self) -> dict:
        return {
            "datagrams_seen":       self._datagrams_seen.value,
            "non_stun":             self._non_stun.value,
            "not_inbound":          self._not_inbound.value,
            "server_replies":       self._server_replies.value,
            "server_ports":         self._server_ports.value,
            "connections_detected": self._connections_detected.value,
            "connections_active":   len(self),
        }

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._connections)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _notify(observer: Observer, connection: P2PConnection) -> None:
        try:
            observer(connection)
        except Exception:
            logger.exception("Observer failed for connection %s", connection.key)
