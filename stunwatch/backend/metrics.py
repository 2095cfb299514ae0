"""
backend/metrics.py

Counters shared between Scapy's capture thread and the event loop.
The tracker keeps its own per-instance counters built from the same Counter.
"""

from __future__ import annotations

import dataclasses
import threading


class Counter:
    """Integer counter that may be bumped from any thread."""

    __slots__ = ("_value", "_lock")

    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    def reset(self) -> None:
        with self._lock:
            self._value = 0

    @property
    def value(self) -> int:
        with self._lock:
            return self._value

    def __repr__(self) -> str:  # pragma: no cover
        return f"Counter({self.value})"


@dataclasses.dataclass(frozen=True)
class CaptureMetrics:
    # every scapy callback
    packets_received: Counter = dataclasses.field(default_factory=Counter)
    # parse_packet raised
    packets_parse_error: Counter = dataclasses.field(default_factory=Counter)
    # no IP/UDP layer
    packets_non_udp: Counter = dataclasses.field(default_factory=Counter)
    # UDP with nothing after the header; cannot be STUN
    datagrams_empty: Counter = dataclasses.field(default_factory=Counter)
    # handed to the event loop
    datagrams_forwarded: Counter = dataclasses.field(default_factory=Counter)
    # ring-buffer evictions, or the loop was already closed
    datagrams_dropped: Counter = dataclasses.field(default_factory=Counter)

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name).value for f in dataclasses.fields(self)}

    def reset_all(self) -> None:
        for f in dataclasses.fields(self):
            getattr(self, f.name).reset()


METRICS = CaptureMetrics()
