"""Credential agent registered with iwd.

The daemon calls back into the agent while a connection is being set up
and blocks until it receives a reply, so ``request_passphrase`` turns every
failure into a structured ``Agent.Error.Canceled`` reply instead of raising.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from iwdctl.core.cache import ObjectCache
from iwdctl.core.coalescer import EventCoalescer
from iwdctl.core.errors import ActivationError, IwdctlError, PromptCanceled, RpcError
from iwdctl.core.model import (
    AGENT_MANAGER_IFACE,
    IWD_INTERFACE_PREFIX,
    IWD_ROOT_PATH,
    NETWORK_IFACE,
    EventKind,
    PassphraseReply,
)
from iwdctl.transports.base import Bus, Registration

LOGGER = logging.getLogger(__name__)

DEFAULT_AGENT_PATH = "/iwdctl/agent"
DEFAULT_PING_TIMEOUT_S = 2.0

Prompt = Callable[[str], Awaitable[str | None]]


class AgentState(Enum):
    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE = "active"


class AgentHandler:
    def __init__(
        self,
        bus: Bus,
        cache: ObjectCache,
        coalescer: EventCoalescer,
        prompt: Prompt,
        *,
        path: str = DEFAULT_AGENT_PATH,
        ping_timeout_s: float = DEFAULT_PING_TIMEOUT_S,
    ) -> None:
        self._bus = bus
        self._cache = cache
        self._coalescer = coalescer
        self._prompt = prompt
        self.path = path
        self.ping_timeout_s = ping_timeout_s
        self._state = AgentState.INACTIVE
        self._handles: list[Registration] = []
        self._lock = asyncio.Lock()
        self._pending_prompt: asyncio.Future[str | None] | None = None
        self._cancel_reason: str | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def handles(self) -> tuple[Registration, ...]:
        return tuple(self._handles)

    async def activate(self) -> None:
        async with self._lock:
            if self._state is AgentState.ACTIVE:
                LOGGER.debug("Agent already active at %s", self.path)
                return
            self._state = AgentState.ACTIVATING
            handles: list[Registration] = []
            registered = False
            try:
                try:
                    await self._bus.ping(self.ping_timeout_s)
                except RpcError as exc:
                    raise ActivationError(f"iwd is not reachable: {exc}") from exc

                try:
                    handles.append(await self._bus.export_agent(self.path, self))
                except (RpcError, ValueError) as exc:
                    raise ActivationError(f"Could not export agent at {self.path}: {exc}") from exc

                try:
                    await self._register()
                except RpcError as exc:
                    raise ActivationError(f"Could not register agent: {exc}") from exc
                registered = True

                for kind in EventKind:
                    try:
                        handles.append(await self._bus.subscribe(kind, self._on_signal))
                    except RpcError as exc:
                        raise ActivationError(f"Could not subscribe to {kind.value}: {exc}") from exc
            except Exception:
                await self._unwind(handles, registered)
                self._state = AgentState.INACTIVE
                raise

            self._handles = handles
            self._state = AgentState.ACTIVE
            LOGGER.info("Agent registered at %s", self.path)

    async def deactivate(self) -> None:
        async with self._lock:
            was_active = self._state is AgentState.ACTIVE
            handles, self._handles = self._handles, []
            for handle in reversed(handles):
                await handle.close()
            self._coalescer.cancel()
            self._state = AgentState.INACTIVE
            try:
                await self._unregister()
            except RpcError as exc:
                if was_active:
                    raise
                LOGGER.debug("UnregisterAgent on inactive agent failed: %s", exc)

    def release(self) -> None:
        """iwd dropped the agent; forget the handles without unregistering."""
        LOGGER.info("Agent released by iwd")
        handles, self._handles = self._handles, []
        self._state = AgentState.INACTIVE
        self._coalescer.cancel()

        async def _close() -> None:
            for handle in reversed(handles):
                await handle.close()

        task = asyncio.ensure_future(_close())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def cancel(self, reason: str) -> None:
        LOGGER.info("iwd canceled the pending request: %s", reason)
        if self._pending_prompt is not None and not self._pending_prompt.done():
            self._cancel_reason = reason or "Canceled by iwd"
            self._pending_prompt.cancel()

    async def request_passphrase(self, network_path: str) -> PassphraseReply:
        network = self._cache.lookup(network_path)
        if network is None:
            LOGGER.warning("Passphrase requested for unknown network %s", network_path)
            return PassphraseReply.canceled(f"Unknown network {network_path}")

        ssid = network.get_str(NETWORK_IFACE, "Name") or network_path
        self._cancel_reason = None
        prompt = asyncio.ensure_future(self._prompt(ssid))
        self._pending_prompt = prompt
        try:
            secret = await prompt
        except asyncio.CancelledError:
            if self._cancel_reason is None:
                raise
            return PassphraseReply.canceled(self._cancel_reason)
        except PromptCanceled as exc:
            return PassphraseReply.canceled(str(exc) or "User canceled")
        except Exception as exc:
            LOGGER.exception("Passphrase prompt for %s failed", ssid)
            return PassphraseReply.canceled(f"Prompt failed: {exc}")
        finally:
            self._pending_prompt = None

        if not secret:
            return PassphraseReply.canceled("User canceled")
        return PassphraseReply(secret=secret)

    async def _register(self) -> None:
        await self._bus.call_method(IWD_ROOT_PATH, AGENT_MANAGER_IFACE, "RegisterAgent", "o", [self.path])

    async def _unregister(self) -> None:
        await self._bus.call_method(IWD_ROOT_PATH, AGENT_MANAGER_IFACE, "UnregisterAgent", "o", [self.path])

    async def _unwind(self, handles: list[Registration], registered: bool) -> None:
        for handle in reversed(handles):
            await handle.close()
        if registered:
            try:
                await self._unregister()
            except IwdctlError as exc:
                LOGGER.warning("Could not unregister agent during rollback: %s", exc)

    def _on_signal(self, kind: EventKind, path: str, args: list[Any]) -> None:
        if kind is EventKind.PROPERTY_CHANGED:
            interface = args[0] if args else ""
            if not str(interface).startswith(IWD_INTERFACE_PREFIX):
                return
        LOGGER.debug("%s on %s", kind.value, path)
        self._coalescer.notify()
