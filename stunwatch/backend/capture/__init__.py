"""
capture/__init__.py

Public API for the capture sub-package.
"""

from .devices import Device, DeviceNotFoundError, auto_detect_device, list_devices, local_addresses
from .filter import build_bpf_filter
from .parser import parse_packet
from .sniffer import PacketCapture

__all__ = [
    "PacketCapture",
    "parse_packet",
    "build_bpf_filter",
    "Device",
    "DeviceNotFoundError",
    "list_devices",
    "auto_detect_device",
    "local_addresses",
]
