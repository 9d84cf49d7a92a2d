from __future__ import annotations

import asyncio

import pytest

from fakes import DEVICE, KNOWN_HOME, NET_COFFEE, NET_HOME, NET_OPEN, FakeBus, make_tree

from iwdctl.core.cache import ObjectCache
from iwdctl.core.errors import NotFoundError, PreconditionError, RpcError
from iwdctl.core.model import DEVICE_IFACE, KNOWN_NETWORK_IFACE, NETWORK_IFACE, STATION_IFACE
from iwdctl.core.service import IwdService
from iwdctl.core.sync import StateSynchronizer


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, str]] = []

    def __call__(self, title: str, body: str) -> None:
        self.calls.append((title, body))


def _service(bus: FakeBus, notifier: RecordingNotifier | None = None) -> IwdService:
    service = IwdService(bus, StateSynchronizer(ObjectCache(bus)), notifier=notifier)
    asyncio.run(service.synchronizer.refresh())
    return service


def test_connect_success_notifies_connected() -> None:
    tree = {
        DEVICE: make_tree()[DEVICE],
        "/net0": {NETWORK_IFACE: {"Name": "CoffeeShop", "Connected": False, "Type": "psk"}},
    }
    bus = FakeBus(tree)
    notifier = RecordingNotifier()
    service = _service(bus, notifier)

    async def scenario():
        return await service.connect("/net0")

    outcome = asyncio.run(scenario())

    assert ("/net0", NETWORK_IFACE, "Connect", ()) in bus.calls
    assert outcome.succeeded
    assert notifier.calls == [("CoffeeShop", "Connected")]


def test_connect_failure_notifies_daemon_message() -> None:
    bus = FakeBus()
    bus.errors["Connect"] = RpcError("net.connman.iwd.Failed", "Operation failed")
    notifier = RecordingNotifier()
    service = _service(bus, notifier)

    async def scenario():
        return await service.connect("CoffeeShop")

    outcome = asyncio.run(scenario())

    assert not outcome.succeeded
    assert outcome.path == NET_COFFEE
    assert notifier.calls == [("CoffeeShop", "Operation failed")]


def test_connect_failure_without_message_uses_readable_text() -> None:
    bus = FakeBus()
    bus.errors["Connect"] = RpcError("net.connman.iwd.InvalidFormat")
    notifier = RecordingNotifier()
    service = _service(bus, notifier)

    async def scenario():
        return await service.connect("CoffeeShop")

    asyncio.run(scenario())
    assert notifier.calls == [("CoffeeShop", "Invalid passphrase format")]


def test_connect_unknown_network_raises_before_rpc() -> None:
    bus = FakeBus()
    service = _service(bus)

    with pytest.raises(NotFoundError):
        service.connect("Nowhere")
    assert bus.calls == []


def test_concurrent_connects_each_get_an_outcome() -> None:
    bus = FakeBus()
    notifier = RecordingNotifier()
    service = _service(bus, notifier)

    async def scenario():
        first = service.connect("CoffeeShop")
        second = service.connect("Library")
        return await asyncio.gather(first, second)

    outcomes = asyncio.run(scenario())

    assert [o.path for o in outcomes] == [NET_COFFEE, NET_OPEN]
    assert sorted(notifier.calls) == [("CoffeeShop", "Connected"), ("Library", "Connected")]


def test_forget_requires_connected_known_network() -> None:
    bus = FakeBus()
    service = _service(bus)

    with pytest.raises(PreconditionError):
        asyncio.run(service.forget("CoffeeShop"))
    assert bus.calls == []


def test_forget_connected_network_without_known_entry() -> None:
    tree = make_tree()
    del tree[NET_HOME][NETWORK_IFACE]["KnownNetwork"]
    bus = FakeBus(tree)
    service = _service(bus)

    with pytest.raises(PreconditionError):
        asyncio.run(service.forget(NET_HOME))
    assert bus.calls == []


def test_forget_calls_known_network() -> None:
    bus = FakeBus()
    service = _service(bus)

    asyncio.run(service.forget("Home"))

    assert bus.calls == [(KNOWN_HOME, KNOWN_NETWORK_IFACE, "Forget", ())]


def test_scan_and_disconnect_target_the_station() -> None:
    bus = FakeBus()
    service = _service(bus)

    asyncio.run(service.scan())
    asyncio.run(service.disconnect())

    assert bus.calls == [
        (DEVICE, STATION_IFACE, "Scan", ()),
        (DEVICE, STATION_IFACE, "Disconnect", ()),
    ]


def test_scan_error_propagates() -> None:
    bus = FakeBus()
    bus.errors["Scan"] = RpcError("net.connman.iwd.Busy", "Device busy")
    service = _service(bus)

    with pytest.raises(RpcError) as exc:
        asyncio.run(service.scan())
    assert exc.value.name == "net.connman.iwd.Busy"


def test_commands_select_station_when_needed() -> None:
    bus = FakeBus()
    service = IwdService(bus, StateSynchronizer(ObjectCache(bus)))

    asyncio.run(service.scan())

    assert bus.fetches == 1
    assert bus.calls == [(DEVICE, STATION_IFACE, "Scan", ())]


def test_commands_without_station_fail_not_found() -> None:
    tree = make_tree()
    tree[DEVICE] = {DEVICE_IFACE: tree[DEVICE][DEVICE_IFACE]}
    bus = FakeBus(tree)
    service = IwdService(bus, StateSynchronizer(ObjectCache(bus)))

    with pytest.raises(NotFoundError):
        asyncio.run(service.disconnect())
    assert bus.calls == []


def test_ordered_networks_follow_daemon_ranking() -> None:
    bus = FakeBus()
    bus.replies["GetOrderedNetworks"] = [
        [[NET_HOME, -4800], [NET_OPEN, -7100], ["/net/connman/iwd/0/3/gone_psk", -8000], [NET_COFFEE, -9000]]
    ]
    service = _service(bus)

    networks = asyncio.run(service.ordered_networks())

    assert [n.ssid for n in networks] == ["Home", "Library", "CoffeeShop"]
    home = networks[0]
    assert home.connected and home.known
    assert home.signal_dbm == -48.0
    assert home.strength == 4
    assert networks[1].security == "open"
    assert networks[1].strength == 2
    assert networks[2].strength == 0


def test_known_networks_most_recent_first() -> None:
    service = _service(FakeBus())

    known = service.known_networks()

    assert [k.name for k in known] == ["Home", "Work"]
    work = known[1]
    assert work.hidden is True
    assert work.autoconnect is False
