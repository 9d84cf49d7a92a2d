"""Stable public API for building tooling on top of iwdctl.

This module is the supported integration surface for third-party callers
(status bars, menus, scripts). Avoid importing from private/internal modules
unless intentionally depending on non-stable internals.
"""

from __future__ import annotations

import asyncio

from iwdctl.core.agent import AgentHandler, AgentState, Prompt
from iwdctl.core.cache import ObjectCache, Snapshot
from iwdctl.core.coalescer import EventCoalescer
from iwdctl.core.config import LoadedSettings, Settings, load_settings
from iwdctl.core.errors import (
    ActivationError,
    ConfigError,
    ConfigValidationError,
    IwdctlError,
    NotFoundError,
    PreconditionError,
    PromptCanceled,
    RpcError,
)
from iwdctl.core.model import (
    ConnectOutcome,
    DeviceState,
    KnownNetworkInfo,
    ManagedObject,
    OrderedNetwork,
    StationState,
)
from iwdctl.core.service import IwdService, Notifier
from iwdctl.core.sync import ErrorReporter, StateSynchronizer, StatusObserver
from iwdctl.notify import DesktopNotifier
from iwdctl.prompt import CommandPrompt, TerminalPrompt
from iwdctl.transports.base import Bus

__all__ = [
    "ActivationError",
    "ConfigError",
    "ConfigValidationError",
    "IwdctlError",
    "NotFoundError",
    "PreconditionError",
    "PromptCanceled",
    "RpcError",
    "ConnectOutcome",
    "DeviceState",
    "KnownNetworkInfo",
    "ManagedObject",
    "OrderedNetwork",
    "StationState",
    "Settings",
    "LoadedSettings",
    "load_settings",
    "Client",
]


class Client:
    """Public client for one iwd instance on one bus connection.

    A `Client` wires the object cache, the debounced synchronizer, the
    credential agent and the command service together. Signals only flow
    while the agent is active (``start()``), since the agent owns the
    subscriptions.
    """

    def __init__(
        self,
        bus: Bus,
        *,
        settings: Settings | None = None,
        prompt: Prompt | None = None,
        notifier: Notifier | None = None,
        on_error: ErrorReporter | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self._bus = bus
        self.cache = ObjectCache(bus)
        self.synchronizer = StateSynchronizer(self.cache, on_error=on_error)
        self.coalescer = EventCoalescer(self.synchronizer.trigger, window_s=self.settings.debounce_s)
        self.agent = AgentHandler(
            bus,
            self.cache,
            self.coalescer,
            prompt or _default_prompt(self.settings),
            path=self.settings.agent_path,
            ping_timeout_s=self.settings.ping_timeout_s,
        )
        self._service = IwdService(bus, self.synchronizer, notifier=notifier or _default_notifier(self.settings))

    @classmethod
    async def open(cls, **kwargs) -> Client:
        from iwdctl.transports.dbus import DbusTransport

        bus = await DbusTransport.connect()
        return cls(bus, **kwargs)

    async def close(self) -> None:
        try:
            if self.agent.state is AgentState.ACTIVE:
                await self.agent.deactivate()
        finally:
            self.coalescer.cancel()
            await self._bus.close()

    async def start(self) -> DeviceState:
        """Register the agent, start following iwd signals and load the first state."""
        await self.agent.activate()
        return await self.refresh()

    async def stop(self) -> None:
        await self.agent.deactivate()

    @property
    def state(self) -> DeviceState:
        return self.synchronizer.state

    @property
    def snapshot(self) -> Snapshot:
        return self.synchronizer.snapshot

    async def refresh(self) -> DeviceState:
        """Refresh immediately; unlike the debounced path, errors are raised."""
        return await self.synchronizer.refresh()

    def add_status_observer(self, observer: StatusObserver) -> None:
        self.synchronizer.add_status_observer(observer)

    async def scan(self) -> None:
        await self._service.scan()

    async def disconnect(self) -> None:
        await self._service.disconnect()

    async def forget(self, network_ref: str) -> None:
        await self._service.forget(network_ref)

    def connect(self, network_ref: str) -> asyncio.Task[ConnectOutcome]:
        return self._service.connect(network_ref)

    async def ordered_networks(self) -> list[OrderedNetwork]:
        return await self._service.ordered_networks()

    def known_networks(self) -> list[KnownNetworkInfo]:
        return self._service.known_networks()


def _default_prompt(settings: Settings) -> Prompt:
    if settings.prompt_command:
        return CommandPrompt(settings.prompt_command)
    return TerminalPrompt()


def _default_notifier(settings: Settings) -> Notifier:
    if settings.notifications_enabled:
        return DesktopNotifier(settings.notify_command)
    return lambda title, body: None
