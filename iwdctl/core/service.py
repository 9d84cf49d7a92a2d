"""Service layer used by the CLI and the public client: scan, connect, disconnect, forget."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from iwdctl.core.device_match import resolve_network
from iwdctl.core.errors import PreconditionError, RpcError
from iwdctl.core.model import (
    KNOWN_NETWORK_IFACE,
    NETWORK_IFACE,
    STATION_IFACE,
    ConnectOutcome,
    KnownNetworkInfo,
    ManagedObject,
    OrderedNetwork,
)
from iwdctl.core.sync import StateSynchronizer
from iwdctl.transports.base import Bus

LOGGER = logging.getLogger(__name__)

Notifier = Callable[[str, str], None]

_ERROR_TEXT = {
    "net.connman.iwd.Aborted": "Operation aborted",
    "net.connman.iwd.Busy": "Device is busy",
    "net.connman.iwd.Failed": "Operation failed",
    "net.connman.iwd.InProgress": "Operation already in progress",
    "net.connman.iwd.InvalidArguments": "Invalid arguments",
    "net.connman.iwd.InvalidFormat": "Invalid passphrase format",
    "net.connman.iwd.NoAgent": "No agent registered to provide credentials",
    "net.connman.iwd.NotConfigured": "Network is not configured",
    "net.connman.iwd.NotConnected": "Not connected",
    "net.connman.iwd.NotFound": "Network not found",
    "net.connman.iwd.NotSupported": "Operation not supported",
    "net.connman.iwd.PermissionDenied": "Permission denied",
    "net.connman.iwd.ServiceSetOverlap": "Multiple access points answered the request",
}


def describe_error(exc: RpcError) -> str:
    return exc.message or _ERROR_TEXT.get(exc.name, exc.name)


def _log_notification(title: str, body: str) -> None:
    LOGGER.info("%s: %s", title, body)


class IwdService:
    def __init__(
        self,
        bus: Bus,
        synchronizer: StateSynchronizer,
        *,
        notifier: Notifier | None = None,
    ) -> None:
        self._bus = bus
        self.synchronizer = synchronizer
        self._notifier = notifier or _log_notification
        self._pending: set[asyncio.Task[ConnectOutcome]] = set()

    async def scan(self) -> None:
        station = await self.synchronizer.ensure_selected()
        await self._bus.call_method(station, STATION_IFACE, "Scan")
        LOGGER.debug("Scan requested on %s", station)

    async def disconnect(self) -> None:
        station = await self.synchronizer.ensure_selected()
        await self._bus.call_method(station, STATION_IFACE, "Disconnect")

    async def forget(self, network_ref: str) -> None:
        network = self.resolve(network_ref)
        known_path = network.get_path(NETWORK_IFACE, "KnownNetwork")
        if not network.get_bool(NETWORK_IFACE, "Connected") or known_path is None:
            name = network.get_str(NETWORK_IFACE, "Name") or network.path
            raise PreconditionError(f"'{name}' is not a known, connected network")
        await self._bus.call_method(known_path, KNOWN_NETWORK_IFACE, "Forget")

    def connect(self, network_ref: str) -> asyncio.Task[ConnectOutcome]:
        """Start connecting; the returned task resolves once iwd answers.

        Passphrase requests issued by iwd meanwhile go to the agent, not here.
        """
        network = self.resolve(network_ref)
        ssid = network.get_str(NETWORK_IFACE, "Name") or network.path
        task = asyncio.ensure_future(self._connect(network.path, ssid))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _connect(self, path: str, ssid: str) -> ConnectOutcome:
        try:
            await self._bus.call_method(path, NETWORK_IFACE, "Connect")
        except RpcError as exc:
            LOGGER.warning("Connect to %s failed: %s", ssid, exc)
            outcome = ConnectOutcome(ssid=ssid, path=path, succeeded=False, message=describe_error(exc))
        else:
            outcome = ConnectOutcome(ssid=ssid, path=path, succeeded=True, message="Connected")
        self._complete(outcome)
        return outcome

    def _complete(self, outcome: ConnectOutcome) -> None:
        try:
            self._notifier(outcome.ssid, outcome.message)
        except Exception:
            LOGGER.exception("Notifier failed for %s", outcome.ssid)

    async def ordered_networks(self) -> list[OrderedNetwork]:
        station = await self.synchronizer.ensure_selected()
        body = await self._bus.call_method(station, STATION_IFACE, "GetOrderedNetworks")
        ranked = body[0] if body else []
        snapshot = self.synchronizer.snapshot
        networks: list[OrderedNetwork] = []
        for path, signal in ranked:
            network = snapshot.lookup(path)
            if network is None:
                LOGGER.debug("Ordered network %s missing from cache", path)
                continue
            networks.append(
                OrderedNetwork(
                    path=path,
                    ssid=network.get_str(NETWORK_IFACE, "Name") or "",
                    security=network.get_str(NETWORK_IFACE, "Type") or "",
                    signal_dbm=int(signal) / 100,
                    connected=bool(network.get_bool(NETWORK_IFACE, "Connected")),
                    known=network.get_path(NETWORK_IFACE, "KnownNetwork") is not None,
                )
            )
        return networks

    def known_networks(self) -> list[KnownNetworkInfo]:
        known = [
            KnownNetworkInfo(
                path=obj.path,
                name=obj.get_str(KNOWN_NETWORK_IFACE, "Name") or "",
                security=obj.get_str(KNOWN_NETWORK_IFACE, "Type") or "",
                hidden=bool(obj.get_bool(KNOWN_NETWORK_IFACE, "Hidden")),
                autoconnect=obj.get_bool(KNOWN_NETWORK_IFACE, "AutoConnect") is not False,
                last_connected=obj.get_str(KNOWN_NETWORK_IFACE, "LastConnectedTime"),
            )
            for obj in self.synchronizer.snapshot.objects_with(KNOWN_NETWORK_IFACE)
        ]
        # ISO 8601 timestamps sort lexically; never-connected networks go last.
        known.sort(key=lambda k: k.last_connected or "", reverse=True)
        return known

    def resolve(self, network_ref: str) -> ManagedObject:
        return resolve_network(
            self.synchronizer.snapshot,
            network_ref,
            device_path=self.synchronizer.selected_path,
        )
