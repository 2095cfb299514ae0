"""
tests/test_tracker.py

Tests for stun/tracker.py.
No network access required — builds RawDatagram objects directly.
"""

from __future__ import annotations

import struct
import threading
from unittest.mock import MagicMock

import pytest

from stunwatch.backend.models import P2PConnection, RawDatagram
from stunwatch.backend.stun.tracker import ConnectionTracker

LOCAL_IP = "192.168.1.5"
PEER_IP = "203.0.113.9"
COOKIE = b"\x21\x12\xa4\x42"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def binding_request(txn: bytes = b"\x00" * 12, attrs: bytes = b"") -> bytes:
    return struct.pack("!HH", 0x0001, len(attrs)) + COOKIE + txn + attrs


def binding_response() -> bytes:
    xor_mapped = struct.pack("!HH", 0x0020, 8) + b"\x00\x01\xf3\x1b\xea\x1a\xd5\x4b"
    return struct.pack("!HH", 0x0101, len(xor_mapped)) + COOKIE + b"\x00" * 12 + xor_mapped


def dgram(
    src_ip=PEER_IP,
    src_port=54321,
    dst_ip=LOCAL_IP,
    dst_port=40000,
    payload=None,
) -> RawDatagram:
    return RawDatagram(
        src_ip=src_ip,
        src_port=src_port,
        dst_ip=dst_ip,
        dst_port=dst_port,
        payload=binding_request() if payload is None else payload,
    )


@pytest.fixture
def tracker():
    return ConnectionTracker([LOCAL_IP])


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

class TestIngestFiltering:

    def test_non_stun_is_discarded_every_time(self, tracker):
        observer = MagicMock()
        tracker.register_observer(observer)
        for _ in range(10):
            tracker.ingest(dgram(payload=b"\x17\xfe\xfd" + b"\x00" * 40))
        assert tracker.snapshot() == []
        observer.assert_not_called()
        assert tracker.stats["non_stun"] == 10

    def test_empty_payload_is_discarded(self, tracker):
        tracker.ingest(dgram(payload=b""))
        assert len(tracker) == 0

    def test_source_local_is_discarded(self):
        tracker = ConnectionTracker([LOCAL_IP, "10.10.10.2"])
        tracker.ingest(dgram(src_ip=LOCAL_IP, dst_ip="10.10.10.2"))
        assert tracker.snapshot() == []
        assert tracker.stats["not_inbound"] == 1

    def test_destination_not_local_is_discarded(self, tracker):
        tracker.ingest(dgram(dst_ip="198.51.100.7"))
        assert tracker.snapshot() == []

    def test_server_reply_is_discarded(self, tracker):
        tracker.ingest(dgram(payload=binding_response()))
        assert tracker.snapshot() == []
        assert tracker.stats["server_replies"] == 1

    def test_server_destination_port_is_discarded(self, tracker):
        tracker.ingest(dgram(dst_port=3478))
        assert tracker.snapshot() == []
        assert tracker.stats["server_ports"] == 1

    @pytest.mark.parametrize("src_port", [80, 443, 3478, 5349, 123])
    def test_server_source_port_is_discarded(self, tracker, src_port):
        tracker.ingest(dgram(src_port=src_port))
        assert tracker.snapshot() == []


# ---------------------------------------------------------------------------
# Recording + notification
# ---------------------------------------------------------------------------

class TestIngestRecording:

    def test_end_to_end_binding_request(self, tracker):
        received: list[P2PConnection] = []
        tracker.register_observer(received.append)

        tracker.ingest(dgram())

        expected = P2PConnection(
            peer_ip=PEER_IP, peer_port=54321,
            local_ip=LOCAL_IP, local_port=40000,
            packet_count=1,
        )
        assert tracker.snapshot() == [expected]
        assert received == [expected]
        assert received[0].to_dict() == {
            "PeerIP": PEER_IP, "PeerPort": 54321,
            "LocalIP": LOCAL_IP, "LocalPort": 40000,
            "PacketCount": 1,
        }

    def test_single_notify_per_key(self, tracker):
        observer = MagicMock()
        tracker.register_observer(observer)

        for i in range(3):
            tracker.ingest(dgram(payload=binding_request(txn=bytes([i]) * 12)))

        observer.assert_called_once()
        (conn,) = tracker.snapshot()
        assert conn.packet_count == 3
        assert tracker.stats["connections_detected"] == 1

    def test_notified_record_keeps_count_of_one(self, tracker):
        received: list[P2PConnection] = []
        tracker.register_observer(received.append)
        tracker.ingest(dgram())
        tracker.ingest(dgram())
        assert received[0].packet_count == 1

    def test_peer_fields_fixed_by_first_packet(self, tracker):
        tracker.ingest(dgram(src_ip=PEER_IP, src_port=54321))
        tracker.ingest(dgram(src_ip="198.51.100.20", src_port=60000))
        (conn,) = tracker.snapshot()
        assert (conn.peer_ip, conn.peer_port) == (PEER_IP, 54321)
        assert conn.packet_count == 2

    def test_distinct_local_ports_are_distinct_connections(self, tracker):
        tracker.ingest(dgram(dst_port=40000))
        tracker.ingest(dgram(dst_port=40002))
        keys = sorted(c.key for c in tracker.snapshot())
        assert keys == [f"{LOCAL_IP}:40000", f"{LOCAL_IP}:40002"]

    def test_observer_exception_does_not_break_ingest(self, tracker):
        tracker.register_observer(MagicMock(side_effect=RuntimeError("boom")))
        tracker.ingest(dgram())
        tracker.ingest(dgram())
        (conn,) = tracker.snapshot()
        assert conn.packet_count == 2


# ---------------------------------------------------------------------------
# Observer registration
# ---------------------------------------------------------------------------

class TestRegisterObserver:

    def test_no_replay_of_earlier_connections(self, tracker):
        tracker.ingest(dgram(dst_port=40000))
        observer = MagicMock()
        tracker.register_observer(observer)
        observer.assert_not_called()

        tracker.ingest(dgram(dst_port=40002))
        observer.assert_called_once()
        assert observer.call_args[0][0].local_port == 40002

    def test_last_registration_wins(self, tracker):
        first, second = MagicMock(), MagicMock()
        tracker.register_observer(first)
        tracker.register_observer(second)
        tracker.ingest(dgram())
        first.assert_not_called()
        second.assert_called_once()

    def test_unregister_with_none(self, tracker):
        observer = MagicMock()
        tracker.register_observer(observer)
        tracker.register_observer(None)
        tracker.ingest(dgram())
        observer.assert_not_called()
        assert len(tracker) == 1


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------

class TestSnapshot:

    def test_snapshot_returns_copies(self, tracker):
        tracker.ingest(dgram())
        (conn,) = tracker.snapshot()
        conn.packet_count = 99
        assert tracker.snapshot()[0].packet_count == 1

    def test_local_addresses_are_frozen(self):
        addrs = [LOCAL_IP]
        tracker = ConnectionTracker(addrs)
        addrs.append("10.0.0.9")
        tracker.ingest(dgram(dst_ip="10.0.0.9"))
        assert tracker.local_addresses == frozenset({LOCAL_IP})
        assert len(tracker) == 0


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrency:

    def test_racing_ingests_create_one_record(self, tracker):
        observer = MagicMock()
        tracker.register_observer(observer)
        barrier = threading.Barrier(8)

        def worker():
            barrier.wait()
            for _ in range(50):
                tracker.ingest(dgram())

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        observer.assert_called_once()
        (conn,) = tracker.snapshot()
        assert conn.packet_count == 400

    def test_snapshots_during_ingest_see_whole_records(self, tracker):
        stop = threading.Event()
        bad: list[P2PConnection] = []

        def reader():
            while not stop.is_set():
                for conn in tracker.snapshot():
                    if conn.packet_count < 1 or conn.peer_ip != PEER_IP:
                        bad.append(conn)

        readers = [threading.Thread(target=reader) for _ in range(3)]
        for t in readers:
            t.start()
        for port in range(40000, 40200):
            tracker.ingest(dgram(dst_port=port))
        stop.set()
        for t in readers:
            t.join()

        assert bad == []
        assert len(tracker) == 200

    def test_observer_sees_record_already_visible(self, tracker):
        seen_in_snapshot: list[bool] = []

        def observer(conn: P2PConnection) -> None:
            seen_in_snapshot.append(any(c.key == conn.key for c in tracker.snapshot()))

        tracker.register_observer(observer)
        tracker.ingest(dgram())
        assert seen_in_snapshot == [True]
