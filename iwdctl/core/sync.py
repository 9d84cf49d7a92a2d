"""State synchronizer: refetch the object graph and publish derived device state."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from iwdctl.core.cache import ObjectCache, Snapshot
from iwdctl.core.device_match import first_station
from iwdctl.core.errors import IwdctlError, NotFoundError
from iwdctl.core.model import (
    DEVICE_IFACE,
    NETWORK_IFACE,
    STATION_IFACE,
    DeviceState,
    StationState,
)

LOGGER = logging.getLogger(__name__)

RefreshObserver = Callable[[], None]
StatusObserver = Callable[[DeviceState], None]
ErrorReporter = Callable[[IwdctlError], None]


def derive_state(snapshot: Snapshot, device_path: str) -> DeviceState:
    device = snapshot.lookup(device_path)
    if device is None:
        return DeviceState()

    state = StationState.parse(device.get_str(STATION_IFACE, "State"))
    ssid = None
    if state is StationState.CONNECTED:
        network = snapshot.lookup(device.get_path(STATION_IFACE, "ConnectedNetwork"))
        if network is not None:
            ssid = network.get_str(NETWORK_IFACE, "Name")

    return DeviceState(
        name=device.get_str(DEVICE_IFACE, "Name") or "",
        state=state,
        ssid=ssid,
        scanning=bool(device.get(STATION_IFACE, "Scanning")),
    )


def _log_error(exc: IwdctlError) -> None:
    LOGGER.warning("State refresh failed: %s", exc)


class StateSynchronizer:
    def __init__(self, cache: ObjectCache, *, on_error: ErrorReporter | None = None) -> None:
        self.cache = cache
        self._on_error = on_error or _log_error
        self._refresh_observers: list[RefreshObserver] = []
        self._status_observers: list[StatusObserver] = []
        self._selected_path: str | None = None
        self._state = DeviceState()
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task[DeviceState | None]] = set()

    @property
    def state(self) -> DeviceState:
        return self._state

    @property
    def selected_path(self) -> str | None:
        return self._selected_path

    @property
    def snapshot(self) -> Snapshot:
        return self.cache.snapshot

    def add_refresh_observer(self, observer: RefreshObserver) -> None:
        self._refresh_observers.append(observer)

    def add_status_observer(self, observer: StatusObserver) -> None:
        self._status_observers.append(observer)

    def trigger(self) -> asyncio.Task[DeviceState | None]:
        task = asyncio.ensure_future(self.on_trigger())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def on_trigger(self) -> DeviceState | None:
        """Refresh once and publish; a failure is reported and None returned."""
        try:
            return await self.refresh()
        except IwdctlError as exc:
            self._on_error(exc)
            return None

    async def refresh(self) -> DeviceState:
        """Refresh once and publish, raising on failure."""
        async with self._lock:
            state = await self._refresh()
            self._state = state
            self._publish(state)
            return state

    async def ensure_selected(self) -> str:
        """Return the managed station path, refreshing first if none is chosen yet."""
        if self._selected_path is None:
            await self.refresh()
        if self._selected_path is None:
            raise NotFoundError("No wireless device selected")
        return self._selected_path

    async def _refresh(self) -> DeviceState:
        snapshot = await self.cache.refresh()
        if self._selected_path is None:
            station = first_station(snapshot)
            self._selected_path = station.path
            LOGGER.info("Managing wireless device %s", station.path)
        elif snapshot.lookup(self._selected_path) is None:
            LOGGER.warning("Managed device %s disappeared", self._selected_path)
        return derive_state(snapshot, self._selected_path)

    def _publish(self, state: DeviceState) -> None:
        for observer in self._refresh_observers:
            try:
                observer()
            except Exception:
                LOGGER.exception("Refresh observer %r failed", observer)
        for observer in self._status_observers:
            try:
                observer(state)
            except Exception:
                LOGGER.exception("Status observer %r failed", observer)
