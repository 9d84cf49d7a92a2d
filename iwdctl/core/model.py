"""Core data models used across the cache, synchronizer, agent, service, and CLI."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

IWD_SERVICE = "net.connman.iwd"
IWD_ROOT_PATH = "/net/connman/iwd"
IWD_INTERFACE_PREFIX = "net.connman.iwd."

DEVICE_IFACE = "net.connman.iwd.Device"
STATION_IFACE = "net.connman.iwd.Station"
NETWORK_IFACE = "net.connman.iwd.Network"
KNOWN_NETWORK_IFACE = "net.connman.iwd.KnownNetwork"
AGENT_MANAGER_IFACE = "net.connman.iwd.AgentManager"
AGENT_IFACE = "net.connman.iwd.Agent"

AGENT_CANCELED_ERROR = "net.connman.iwd.Agent.Error.Canceled"

OBJECT_MANAGER_IFACE = "org.freedesktop.DBus.ObjectManager"
PROPERTIES_IFACE = "org.freedesktop.DBus.Properties"


class EventKind(Enum):
    OBJECT_ADDED = "InterfacesAdded"
    OBJECT_REMOVED = "InterfacesRemoved"
    PROPERTY_CHANGED = "PropertiesChanged"

    @property
    def interface(self) -> str:
        if self is EventKind.PROPERTY_CHANGED:
            return PROPERTIES_IFACE
        return OBJECT_MANAGER_IFACE


class StationState(Enum):
    UNKNOWN = "unknown"
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ROAMING = "roaming"
    DISCONNECTING = "disconnecting"

    @classmethod
    def parse(cls, value: str | None) -> StationState:
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value.strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class ManagedObject:
    """One bus object and the property bags of the interfaces it exposes.

    Accessors never raise on a missing or mistyped property; they return
    ``None`` so callers decide what absence means.
    """

    path: str
    interfaces: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def has_interface(self, interface: str) -> bool:
        return interface in self.interfaces

    def properties(self, interface: str) -> Mapping[str, Any] | None:
        return self.interfaces.get(interface)

    def get(self, interface: str, name: str) -> Any:
        props = self.interfaces.get(interface)
        if props is None:
            return None
        return props.get(name)

    def get_str(self, interface: str, name: str) -> str | None:
        value = self.get(interface, name)
        return value if isinstance(value, str) else None

    def get_bool(self, interface: str, name: str) -> bool | None:
        value = self.get(interface, name)
        return value if isinstance(value, bool) else None

    def get_path(self, interface: str, name: str) -> str | None:
        value = self.get_str(interface, name)
        if value is None or not value.startswith("/"):
            return None
        return value


@dataclass(frozen=True)
class DeviceState:
    name: str = ""
    state: StationState = StationState.UNKNOWN
    ssid: str | None = None
    scanning: bool = False


@dataclass(frozen=True)
class OrderedNetwork:
    path: str
    ssid: str
    security: str
    signal_dbm: float
    connected: bool
    known: bool

    @property
    def strength(self) -> int:
        """Signal quality as 0-4 bars."""
        for bars, floor in ((4, -60.0), (3, -67.0), (2, -75.0), (1, -85.0)):
            if self.signal_dbm >= floor:
                return bars
        return 0


@dataclass(frozen=True)
class KnownNetworkInfo:
    path: str
    name: str
    security: str
    hidden: bool
    autoconnect: bool
    last_connected: str | None


@dataclass(frozen=True)
class ConnectOutcome:
    ssid: str
    path: str
    succeeded: bool
    message: str


@dataclass(frozen=True)
class PassphraseReply:
    secret: str | None = None
    error: str | None = None
    reason: str | None = None

    @classmethod
    def canceled(cls, reason: str) -> PassphraseReply:
        return cls(error=AGENT_CANCELED_ERROR, reason=reason)

    @property
    def is_canceled(self) -> bool:
        return self.error == AGENT_CANCELED_ERROR
