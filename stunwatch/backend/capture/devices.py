"""
capture/devices.py

Network device discovery on top of Scapy's interface table.

  list_devices()        — every working interface with its addresses
  auto_detect_device()  — best guess at the interface carrying real traffic
  local_addresses()     — the host's own IPs, used as the tracker's
                          LocalAddressSet

Auto-detection ranks wired adapters first, then wireless, then anything
else. Loopback, address-less, VMware/VirtualBox/Bluetooth and virtual
adapters are skipped. Descriptions are matched for Windows (Npcap) names;
Linux/macOS interface-name prefixes are matched too since Scapy reports the
name as the description there.
"""

from __future__ import annotations

import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

try:
    from scapy.interfaces import get_working_ifaces  # type: ignore[import-untyped]
except ImportError:  # pragma: no cover
    get_working_ifaces = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_SKIP_KEYWORDS = ("vmware", "bluetooth", "virtualbox")
_WIRED_PREFIXES = ("eth", "en")
_WIRELESS_PREFIXES = ("wl",)


class DeviceNotFoundError(RuntimeError):
    """No capture device suitable for auto-detection."""


@dataclass(slots=True)
class Device:
    name: str
    description: str = ""
    addresses: list[str] = field(default_factory=list)

    @property
    def routable_addresses(self) -> list[str]:
        """Addresses excluding loopback and IPv6 link-local."""
        return [a for a in self.addresses if _is_routable(a)]


def _is_routable(address: str) -> bool:
    try:
        ip = ipaddress.ip_address(address.split("%", 1)[0])
    except ValueError:
        return False
    return not (ip.is_loopback or ip.is_unspecified or (ip.version == 6 and ip.is_link_local))


def _iface_addresses(iface) -> list[str]:
    ips = getattr(iface, "ips", None)
    if isinstance(ips, dict):
        return [str(a) for version in sorted(ips) for a in ips[version]]
    ip = getattr(iface, "ip", None)
    return [str(ip)] if ip else []


def list_devices() -> list[Device]:
    """Return every working interface Scapy knows about."""
    if get_working_ifaces is None:  # pragma: no cover
        raise RuntimeError("scapy is not installed. Install it with: pip install scapy")

    devices = [
        Device(
            name=str(iface.name),
            description=str(getattr(iface, "description", "") or ""),
            addresses=_iface_addresses(iface),
        )
        for iface in get_working_ifaces()
    ]
    logger.debug("Found %d interfaces: %s", len(devices), [d.name for d in devices])
    return devices


def _is_wired(desc: str, name: str) -> bool:
    if "virtual" in desc:
        return False
    return (
        "ethernet" in desc
        or "realtek" in desc
        or ("intel" in desc and "connection" in desc)
        or "gigabit" in desc
        or ("controller" in desc and "wi-fi" not in desc)
        or name.startswith(_WIRED_PREFIXES)
    )


def _is_wireless(desc: str, name: str) -> bool:
    if "virtual" in desc or "microsoft wi-fi direct" in desc:
        return False
    return (
        "wi-fi" in desc
        or "wifi" in desc
        or "wireless" in desc
        or "802.11" in desc
        or name.startswith(_WIRELESS_PREFIXES)
    )


def auto_detect_device(devices: Sequence[Device] | None = None) -> str:
    """
    Pick the interface to capture on.

    Raises:
        DeviceNotFoundError: no interface survives the filters.
    """
    if devices is None:
        devices = list_devices()

    wired: list[str] = []
    wireless: list[str] = []
    other: list[str] = []

    for device in devices:
        if not device.routable_addresses:
            continue
        desc = device.description.lower()
        name = device.name.lower()
        if any(keyword in desc for keyword in _SKIP_KEYWORDS):
            continue
        if _is_wired(desc, name):
            wired.append(device.name)
        elif _is_wireless(desc, name):
            wireless.append(device.name)
        else:
            other.append(device.name)

    for bucket in (wired, wireless, other):
        if bucket:
            return bucket[0]
    raise DeviceNotFoundError("no suitable capture device found")


def local_addresses(
    devices: Sequence[Device] | None = None,
    extra: Iterable[str] = (),
) -> list[str]:
    """
    Unique routable addresses of every interface, followed by *extra*.

    *extra* covers addresses the interface table does not report, such as
    a WireGuard tunnel endpoint.
    """
    if devices is None:
        devices = list_devices()

    seen: set[str] = set()
    result: list[str] = []
    for address in [a for d in devices for a in d.routable_addresses] + list(extra):
        if address not in seen:
            seen.add(address)
            result.append(address)
    return result
