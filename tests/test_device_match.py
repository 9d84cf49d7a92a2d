import pytest

from fakes import DEVICE, NET_COFFEE, NET_HOME, make_tree

from iwdctl.core.cache import Snapshot
from iwdctl.core.device_match import first_station, resolve_network
from iwdctl.core.errors import NotFoundError
from iwdctl.core.model import DEVICE_IFACE, NETWORK_IFACE


def test_first_station_picks_device_with_station_interface() -> None:
    snapshot = Snapshot.from_tree(make_tree())
    assert first_station(snapshot).path == DEVICE


def test_device_in_ap_mode_is_not_a_station() -> None:
    tree = make_tree()
    tree[DEVICE] = {DEVICE_IFACE: tree[DEVICE][DEVICE_IFACE]}
    with pytest.raises(NotFoundError):
        first_station(Snapshot.from_tree(tree))


def test_resolve_by_path_and_by_ssid() -> None:
    snapshot = Snapshot.from_tree(make_tree())
    assert resolve_network(snapshot, NET_COFFEE).path == NET_COFFEE
    assert resolve_network(snapshot, "Home", device_path=DEVICE).path == NET_HOME


def test_resolve_ssid_falls_back_to_case_insensitive_match() -> None:
    snapshot = Snapshot.from_tree(make_tree())
    assert resolve_network(snapshot, "coffeeshop").path == NET_COFFEE


def test_resolve_ignores_networks_of_other_devices() -> None:
    tree = make_tree()
    tree[NET_COFFEE][NETWORK_IFACE]["Device"] = "/net/connman/iwd/1/4"
    with pytest.raises(NotFoundError):
        resolve_network(Snapshot.from_tree(tree), "CoffeeShop", device_path=DEVICE)


def test_resolve_path_that_is_not_a_network() -> None:
    with pytest.raises(NotFoundError):
        resolve_network(Snapshot.from_tree(make_tree()), DEVICE)
