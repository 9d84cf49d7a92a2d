"""D-Bus transport for iwd using dbus-fast (pure asyncio)."""

# ServiceInterface reads D-Bus signatures from the literal annotations below,
# so this module must not use postponed evaluation of annotations.

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from dbus_fast import BusType, DBusError, Message, MessageType, Variant
from dbus_fast.aio import MessageBus
from dbus_fast.service import ServiceInterface, method

from iwdctl.core.errors import RpcError
from iwdctl.core.model import AGENT_IFACE, IWD_SERVICE, OBJECT_MANAGER_IFACE, EventKind
from iwdctl.transports.base import AgentBackend, Registration, SignalHandler

LOGGER = logging.getLogger(__name__)

DBUS_SERVICE = "org.freedesktop.DBus"
DBUS_PATH = "/org/freedesktop/DBus"
PEER_IFACE = "org.freedesktop.DBus.Peer"


def unpack(value: Any) -> Any:
    """Strip Variant wrappers recursively."""
    if isinstance(value, Variant):
        return unpack(value.value)
    if isinstance(value, dict):
        return {key: unpack(item) for key, item in value.items()}
    if isinstance(value, list):
        return [unpack(item) for item in value]
    return value


class AgentInterface(ServiceInterface):
    """net.connman.iwd.Agent as seen by the daemon."""

    def __init__(self, backend: AgentBackend):
        super().__init__(AGENT_IFACE)
        self._backend = backend

    @method()
    def Release(self):
        self._backend.release()

    @method()
    async def RequestPassphrase(self, network: "o") -> "s":
        reply = await self._backend.request_passphrase(network)
        if reply.error is not None:
            raise DBusError(reply.error, reply.reason or "")
        return reply.secret

    @method()
    def Cancel(self, reason: "s"):
        self._backend.cancel(reason)


class _Export:
    def __init__(self, bus: MessageBus, path: str, interface: ServiceInterface):
        self._bus = bus
        self._path = path
        self._interface = interface
        self._closed = False

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unexport(self._path, self._interface)


class _Subscription:
    def __init__(self, transport: "DbusTransport", rule: str, callback: Any):
        self._transport = transport
        self._rule = rule
        self._callback = callback
        self._closed = False

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.bus.remove_message_handler(self._callback)
        try:
            await self._transport.call_bus("RemoveMatch", "s", [self._rule])
        except RpcError as exc:
            LOGGER.debug("RemoveMatch %s failed: %s", self._rule, exc)


class DbusTransport:
    def __init__(self, bus: MessageBus, *, service: str = IWD_SERVICE):
        self.bus = bus
        self.service = service

    @classmethod
    async def connect(cls, bus_type: BusType = BusType.SYSTEM) -> "DbusTransport":
        try:
            bus = await MessageBus(bus_type=bus_type).connect()
        except Exception as exc:
            raise RpcError("org.freedesktop.DBus.Error.NoServer", f"Could not connect to D-Bus: {exc}") from exc
        return cls(bus)

    async def _call(
        self,
        destination: str,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        message = Message(
            destination=destination,
            path=path,
            interface=interface,
            member=member,
            signature=signature,
            body=list(body),
        )
        try:
            reply = await self.bus.call(message)
        except (EOFError, OSError) as exc:
            raise RpcError("org.freedesktop.DBus.Error.Disconnected", str(exc)) from exc
        if reply is None:
            return []
        if reply.message_type == MessageType.ERROR:
            text = reply.body[0] if reply.body and isinstance(reply.body[0], str) else ""
            raise RpcError(reply.error_name or "org.freedesktop.DBus.Error.Failed", text)
        return [unpack(item) for item in reply.body]

    async def call_bus(self, member: str, signature: str = "", body: Sequence[Any] = ()) -> list[Any]:
        return await self._call(DBUS_SERVICE, DBUS_PATH, DBUS_SERVICE, member, signature, body)

    async def call_method(
        self,
        path: str,
        interface: str,
        member: str,
        signature: str = "",
        body: Sequence[Any] = (),
    ) -> list[Any]:
        LOGGER.debug("Calling %s.%s on %s", interface, member, path)
        return await self._call(self.service, path, interface, member, signature, body)

    async def get_managed_objects(self) -> Mapping[str, Mapping[str, Mapping[str, Any]]]:
        body = await self.call_method("/", OBJECT_MANAGER_IFACE, "GetManagedObjects")
        return body[0] if body else {}

    async def ping(self, timeout_s: float) -> None:
        try:
            await asyncio.wait_for(self.call_method("/", PEER_IFACE, "Ping"), timeout_s)
        except asyncio.TimeoutError as exc:
            raise RpcError(
                "org.freedesktop.DBus.Error.Timeout",
                f"{self.service} did not answer within {timeout_s}s",
            ) from exc

    async def export_agent(self, path: str, backend: AgentBackend) -> Registration:
        interface = AgentInterface(backend)
        self.bus.export(path, interface)
        return _Export(self.bus, path, interface)

    async def subscribe(self, kind: EventKind, handler: SignalHandler) -> Registration:
        rule = f"type='signal',sender='{self.service}',interface='{kind.interface}',member='{kind.value}'"
        await self.call_bus("AddMatch", "s", [rule])

        def _on_message(message: Message) -> None:
            if message.message_type != MessageType.SIGNAL:
                return None
            if message.interface != kind.interface or message.member != kind.value:
                return None
            handler(kind, message.path, [unpack(item) for item in message.body])
            return None

        self.bus.add_message_handler(_on_message)
        return _Subscription(self, rule, _on_message)

    async def close(self) -> None:
        self.bus.disconnect()
