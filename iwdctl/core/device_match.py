"""Station selection and network reference resolution."""

from __future__ import annotations

from iwdctl.core.cache import Snapshot
from iwdctl.core.errors import NotFoundError
from iwdctl.core.model import DEVICE_IFACE, NETWORK_IFACE, STATION_IFACE, ManagedObject


def first_station(snapshot: Snapshot) -> ManagedObject:
    candidates = snapshot.objects_with(DEVICE_IFACE, STATION_IFACE)
    if not candidates:
        raise NotFoundError("No wireless device in station mode found. Is iwd managing an interface?")
    return candidates[0]


def _belongs_to(network: ManagedObject, device_path: str | None) -> bool:
    if device_path is None:
        return True
    owner = network.get_path(NETWORK_IFACE, "Device")
    return owner is None or owner == device_path


def resolve_network(snapshot: Snapshot, ref: str, device_path: str | None = None) -> ManagedObject:
    """Find a network by object path or by SSID.

    SSID matching is exact first, then case-insensitive, and only considers
    networks seen by ``device_path`` when one is given.
    """
    if ref.startswith("/"):
        network = snapshot.lookup(ref)
        if network is None or not network.has_interface(NETWORK_IFACE):
            raise NotFoundError(f"No network at {ref}")
        return network

    networks = [n for n in snapshot.objects_with(NETWORK_IFACE) if _belongs_to(n, device_path)]
    exact = [n for n in networks if n.get_str(NETWORK_IFACE, "Name") == ref]
    if exact:
        return exact[0]
    lowered = ref.lower()
    folded = [n for n in networks if (n.get_str(NETWORK_IFACE, "Name") or "").lower() == lowered]
    if folded:
        return folded[0]
    raise NotFoundError(f"No network named '{ref}' in range. Try 'iwdctl scan' first.")
