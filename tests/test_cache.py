from __future__ import annotations

import asyncio

import pytest

from fakes import DEVICE, NET_HOME, FakeBus, make_tree

from iwdctl.core.cache import ObjectCache
from iwdctl.core.errors import RpcError
from iwdctl.core.model import DEVICE_IFACE, NETWORK_IFACE, STATION_IFACE, ManagedObject


def test_refresh_replaces_snapshot_wholesale() -> None:
    bus = FakeBus()
    cache = ObjectCache(bus)

    first = asyncio.run(cache.refresh())
    assert cache.lookup(NET_HOME) is not None

    del bus.tree[NET_HOME]
    second = asyncio.run(cache.refresh())

    assert second is cache.snapshot
    assert cache.lookup(NET_HOME) is None
    # The earlier snapshot is untouched by the later fetch.
    assert first.lookup(NET_HOME) is not None
    assert bus.fetches == 2


def test_failed_fetch_keeps_previous_snapshot() -> None:
    bus = FakeBus()
    cache = ObjectCache(bus)
    before = asyncio.run(cache.refresh())

    bus.errors["GetManagedObjects"] = RpcError("org.freedesktop.DBus.Error.ServiceUnknown", "iwd is gone")
    with pytest.raises(RpcError):
        asyncio.run(cache.refresh())

    assert cache.snapshot is before


def test_interface_properties_and_lookup_misses() -> None:
    cache = ObjectCache(FakeBus())
    asyncio.run(cache.refresh())

    props = cache.interface_properties(DEVICE, DEVICE_IFACE)
    assert props is not None
    assert props["Name"] == "wlan0"
    assert cache.interface_properties(DEVICE, NETWORK_IFACE) is None
    assert cache.interface_properties("/nope", DEVICE_IFACE) is None
    assert cache.lookup(None) is None


def test_snapshot_is_read_only() -> None:
    cache = ObjectCache(FakeBus())
    snapshot = asyncio.run(cache.refresh())
    props = snapshot.interface_properties(DEVICE, STATION_IFACE)
    with pytest.raises(TypeError):
        props["State"] = "disconnected"  # type: ignore[index]


def test_objects_with_keeps_fetch_order() -> None:
    cache = ObjectCache(FakeBus(make_tree()))
    snapshot = asyncio.run(cache.refresh())
    paths = [obj.path for obj in snapshot.objects_with(NETWORK_IFACE)]
    assert paths[0] == NET_HOME
    assert len(paths) == 3


def test_typed_accessors_reject_wrong_types() -> None:
    obj = ManagedObject(
        path="/x",
        interfaces={
            STATION_IFACE: {
                "State": "connected",
                "Scanning": 1,
                "ConnectedNetwork": "not-a-path",
            },
        },
    )
    assert obj.get_str(STATION_IFACE, "State") == "connected"
    assert obj.get_bool(STATION_IFACE, "Scanning") is None
    assert obj.get_path(STATION_IFACE, "ConnectedNetwork") is None
    assert obj.get(NETWORK_IFACE, "Name") is None
