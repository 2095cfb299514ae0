"""
capture/filter.py

BPF (Berkeley Packet Filter) string builder.

BPF filters are applied directly by libpcap at the kernel level,
so only matching packets are even handed to Python — this is the
first and cheapest line of filtering.

Usage:
    bpf = build_bpf_filter()                          # "udp"
    bpf = build_bpf_filter(exclude_ports=[53])        # drop DNS noise
    bpf = build_bpf_filter(exclude_ips=["10.0.0.1"])
"""

from __future__ import annotations

import logging
from typing import Sequence

logger = logging.getLogger(__name__)


def build_bpf_filter(
    exclude_ports: Sequence[int] | None = None,
    exclude_ips: Sequence[str] | None = None,
    base: str = "udp",
) -> str:
    """
    Build a BPF filter string for UDP capture.

    Args:
        exclude_ports: UDP ports whose traffic is never handed to Python.
                       Out-of-range values are skipped with a warning.
        exclude_ips:   Host IPs to exclude from capture.
        base:          Root BPF clause. Default 'udp'.

    Returns:
        A BPF filter string ready to pass to Scapy's AsyncSniffer.

    Examples:
        >>> build_bpf_filter()
        'udp'
        >>> build_bpf_filter(exclude_ports=[53, 5353])
        'udp and not (port 53 or port 5353)'
        >>> build_bpf_filter(exclude_ports=[53], exclude_ips=['10.0.0.1'])
        'udp and not (port 53) and not (host 10.0.0.1)'
    """
    parts: list[str] = [base]

    if exclude_ports:
        valid = []
        for port in exclude_ports:
            if not 0 <= int(port) <= 65535:
                logger.warning("Port out of range for BPF filter: %r — skipping", port)
                continue
            valid.append(f"port {int(port)}")
        if valid:
            parts.append(f"not ({' or '.join(valid)})")

    if exclude_ips:
        host_clauses = " or ".join(f"host {ip}" for ip in exclude_ips)
        parts.append(f"not ({host_clauses})")

    bpf = " and ".join(parts)
    logger.debug("Built BPF filter: %r", bpf)
    return bpf
